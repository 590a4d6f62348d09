"""
Pytest configuration and fixtures for SEOLens tests.
"""
import os
import uuid
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Callable
from unittest.mock import AsyncMock, MagicMock

# Keep tests independent of any local .env credentials
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["LLM_API_KEY"] = ""
os.environ["OPENAI_API_KEY"] = ""
os.environ["ANTHROPIC_API_KEY"] = ""
os.environ["PAGESPEED_API_KEY"] = ""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from seolens.models import Base, Website
from seolens.services.content_analyzer import ContentAnalyzer
from seolens.services.fetcher import PageFetcher
from seolens.services.issue_tracker import IssueTracker
from seolens.services.seo_service import SEOAnalysisService
from seolens.services.speed_estimator import SpeedEstimator
from seolens.services.storage import DatabaseSeoStorage
from seolens.services.technical_analyzer import SiteProbeResult

from tests.fixtures.sample_pages import PERFECT_PAGE_HTML, UNTITLED_PAGE_HTML

# Use SQLite for testing (in-memory)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_USER_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
TEST_WEBSITE_ID = uuid.UUID("00000000-0000-0000-0000-000000000002")


class FrozenClock:
    """Settable clock shared by the tracker and storage under test."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def html_transport(
    pages: dict[str, str],
    status_codes: dict[str, int] | None = None,
) -> httpx.MockTransport:
    """
    Serve ``pages`` by path. Unknown paths return 404; HEAD requests get an
    empty body with the page's status.
    """
    status_codes = status_codes or {}

    def handler(request: httpx.Request) -> httpx.Response:
        path = request.url.path or "/"
        if path not in pages:
            return httpx.Response(404, text="Not found")
        status = status_codes.get(path, 200)
        if request.method == "HEAD":
            return httpx.Response(status)
        return httpx.Response(
            status,
            text=pages[path],
            headers={"Content-Type": "text/html; charset=utf-8"},
        )

    return httpx.MockTransport(handler)


def failing_transport(exc_factory: Callable[[httpx.Request], Exception]) -> httpx.MockTransport:
    def handler(request: httpx.Request) -> httpx.Response:
        raise exc_factory(request)

    return httpx.MockTransport(handler)


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def session_maker(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session
        await session.rollback()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def storage(session_maker, clock) -> DatabaseSeoStorage:
    return DatabaseSeoStorage(session_maker, clock=clock)


@pytest.fixture
def tracker(storage, clock) -> IssueTracker:
    return IssueTracker(
        storage,
        clock=clock,
        ai_fix_grace_hours=48,
        manual_fix_grace_hours=24,
    )


@pytest_asyncio.fixture(scope="function")
async def website(db_session: AsyncSession) -> Website:
    """A website owned by the test user."""
    site = Website(
        id=TEST_WEBSITE_ID,
        user_id=TEST_USER_ID,
        name="Example Site",
        url="https://example.com",
    )
    db_session.add(site)
    await db_session.commit()
    return site


# ============================================================================
# Service Fixtures
# ============================================================================

@pytest.fixture
def site_pages() -> dict[str, str]:
    return {
        "/": PERFECT_PAGE_HTML,
        "/perfect-page": PERFECT_PAGE_HTML,
        "/untitled": UNTITLED_PAGE_HTML,
    }


@pytest.fixture
def page_fetcher(site_pages) -> PageFetcher:
    return PageFetcher(transport=html_transport(site_pages))


@pytest.fixture
def site_probe() -> AsyncMock:
    return AsyncMock(return_value=SiteProbeResult())


@pytest.fixture
def seo_service(storage, tracker, page_fetcher, site_probe) -> SEOAnalysisService:
    """Analysis service wired to in-memory storage and mocked network."""
    return SEOAnalysisService(
        storage=storage,
        content_analyzer=ContentAnalyzer(None),
        speed_estimator=SpeedEstimator(fetcher=page_fetcher),
        fetcher=page_fetcher,
        tracker=tracker,
        site_probe=site_probe,
    )


@pytest_asyncio.fixture(scope="function")
async def async_client(seo_service) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client against the app with the test service installed."""
    from seolens.main import app

    app.state.seo_service = seo_service
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# ============================================================================
# Mock Fixtures
# ============================================================================

@pytest.fixture
def mock_storage():
    """Mock SeoStorage."""
    mock = MagicMock()
    mock.get_website = AsyncMock(return_value=MagicMock(id=TEST_WEBSITE_ID))
    mock.create_report = AsyncMock(return_value=MagicMock(id=uuid.uuid4()))
    mock.update_website = AsyncMock(return_value=None)
    mock.get_tracked_issues = AsyncMock(return_value=[])
    mock.create_or_update_issue = AsyncMock(side_effect=lambda issue: MagicMock(id=uuid.uuid4(), **issue))
    mock.update_issue_status = AsyncMock(return_value=None)
    mock.get_issue_tracking_summary = AsyncMock(return_value={})
    mock.track_ai_usage = AsyncMock(return_value=None)
    return mock


@pytest.fixture
def mock_llm_client():
    """Mock content-analysis provider returning a full JSON grade."""
    from seolens.integrations.llm import ProviderResult

    mock = MagicMock()
    mock.analyze = AsyncMock(return_value=ProviderResult(
        text="""{
            "qualityScore": 88,
            "readabilityScore": 75,
            "keywordOptimization": {
                "primaryKeywordDensity": 1.8,
                "keywordDistribution": "excellent",
                "missingKeywords": ["tomato varieties"],
                "keywordCannibalization": false,
                "lsiKeywords": ["heirloom"]
            },
            "eatScore": {"expertise": 80, "authoritativeness": 70, "trustworthiness": 90, "overall": 80},
            "contentGaps": ["watering schedule"],
            "semanticKeywords": ["container gardening"],
            "contentStructureScore": 82,
            "uniquenessScore": 77,
            "userIntentAlignment": 85,
            "duplicateContentRisk": 10
        }""",
        tokens_used=1234,
        provider="openai",
        model="gpt-4o-mini",
    ))
    mock.estimate_cost = MagicMock(return_value=0.01234)
    mock.close = AsyncMock()
    return mock
