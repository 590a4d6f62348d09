"""
Integration tests for the SEO analysis service.

Runs full audits against mocked HTTP pages and in-memory SQLite storage.
"""
import uuid
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from seolens.core.exceptions import FetchError, FetchErrorKind, StorageError
from seolens.models import SeoReport, Website
from seolens.models.issue import FixMethod, IssueSeverity, IssueStatus
from seolens.services.content_analyzer import ContentAnalyzer, default_content_signals
from seolens.services.seo_service import (
    AnalysisOptions,
    AnalysisRequest,
    SEOAnalysisService,
    extract_recent_activity,
)
from seolens.services.speed_estimator import SpeedEstimator
from seolens.services.technical_analyzer import SiteProbeResult

from tests.conftest import TEST_USER_ID, TEST_WEBSITE_ID


def find(issues, title):
    return next(issue for issue in issues if issue.title == title)


class TestAnalyzeWebsite:
    """Test a full audit without persistence."""

    @pytest.mark.asyncio
    async def test_untitled_page_without_ai(self, seo_service):
        """A page with no title or description and one unlabeled image."""
        result = await seo_service.analyze_website(
            AnalysisRequest(url="https://example.com/untitled")
        )

        assert find(result.issues, "Missing Page Title").severity == IssueSeverity.CRITICAL
        assert find(result.issues, "Missing Meta Description").severity == IssueSeverity.CRITICAL
        assert find(result.issues, "Images Missing Alt Text").severity == IssueSeverity.WARNING
        assert "Missing Viewport Meta Tag" not in [issue.title for issue in result.issues]

        assert result.content_analysis == default_content_signals(result.content_analysis.word_count)
        assert result.content_analysis.quality_score == 70
        assert result.ai_analysis_performed is False
        assert result.tokens_used == 0

        assert result.recommendations[0].title == "Fix Critical SEO Issues"
        assert 0 <= result.score < 100
        assert result.page_speed_score == 95
        assert result.report_id is None
        assert result.tracking is None

    @pytest.mark.asyncio
    async def test_scheme_is_added(self, seo_service, site_probe):
        result = await seo_service.analyze_website(AnalysisRequest(url="example.com/perfect-page"))

        assert result.url == "https://example.com/perfect-page"
        site_probe.assert_awaited_once_with("https://example.com/perfect-page")

    @pytest.mark.asyncio
    async def test_perfect_page_scores_higher(self, seo_service):
        perfect = await seo_service.analyze_website(AnalysisRequest(url="https://example.com/perfect-page"))
        untitled = await seo_service.analyze_website(AnalysisRequest(url="https://example.com/untitled"))

        assert perfect.score > untitled.score
        assert not [issue for issue in perfect.issues if issue.severity == IssueSeverity.CRITICAL]

    @pytest.mark.asyncio
    async def test_site_probe_issues(self, seo_service, site_probe):
        site_probe.return_value = SiteProbeResult(has_sitemap=False, has_robots_txt=False)

        result = await seo_service.analyze_website(AnalysisRequest(url="https://example.com/perfect-page"))

        titles = [issue.title for issue in result.issues]
        assert titles[-2:] == ["Missing XML Sitemap", "Robots.txt Issues"]
        assert result.site_probes.has_sitemap is False

    @pytest.mark.asyncio
    async def test_unreachable_page_raises(self, seo_service):
        """Fetch failures abort the run."""
        with pytest.raises(FetchError) as exc_info:
            await seo_service.analyze_website(AnalysisRequest(url="https://example.com/gone"))

        assert exc_info.value.kind == FetchErrorKind.HTTP_STATUS

    @pytest.mark.asyncio
    async def test_ai_content_analysis(self, page_fetcher, site_probe, mock_llm_client, mock_storage):
        """Provider output drives content signals and usage is recorded."""
        service = SEOAnalysisService(
            storage=mock_storage,
            fetcher=page_fetcher,
            speed_estimator=SpeedEstimator(fetcher=page_fetcher),
            site_probe=site_probe,
            llm_client=mock_llm_client,
        )

        result = await service.analyze_website(AnalysisRequest(
            url="https://example.com/perfect-page",
            target_keywords=["seo"],
            user_id=TEST_USER_ID,
        ))

        assert result.ai_analysis_performed is True
        assert result.tokens_used == 1234
        assert result.content_analysis.quality_score == 88
        assert result.content_analysis.content_gaps == ["watering schedule"]
        mock_storage.track_ai_usage.assert_awaited_once_with(
            user_id=TEST_USER_ID,
            website_id=None,
            provider="openai",
            model="gpt-4o-mini",
            tokens_used=1234,
            cost_usd=0.01234,
        )
        mock_storage.create_report.assert_not_called()

        await service.close()
        mock_llm_client.close.assert_awaited_once()

    def test_to_dict(self):
        from seolens.services.seo_service import AnalysisResult
        from seolens.services.technical_analyzer import TechnicalSignals

        result = AnalysisResult(
            url="https://example.com",
            score=50,
            issues=[],
            recommendations=[],
            page_speed_score=50,
            technical_details=TechnicalSignals(),
            content_analysis=default_content_signals(0),
            site_probes=SiteProbeResult(),
        )

        data = result.to_dict()

        assert data["report_id"] is None
        assert data["tracking"] is None
        assert data["technical_details"]["meta"]["title_length"] == 0
        assert data["content_analysis"]["eat_score"]["overall"] == 70
        assert data["site_probes"] == {"has_sitemap": True, "has_robots_txt": True}


class TestPersistence:
    """Test report storage and issue tracking through the service."""

    def request(self, **options):
        return AnalysisRequest(
            url="https://example.com/untitled",
            user_id=TEST_USER_ID,
            website_id=TEST_WEBSITE_ID,
            options=AnalysisOptions(**options),
        )

    @pytest.mark.asyncio
    async def test_report_and_tracking(self, seo_service, storage, website, db_session):
        result = await seo_service.analyze_website(self.request())

        assert result.report_id is not None
        assert result.tracking.created == len(result.issues)

        report = (await db_session.execute(select(SeoReport))).scalar_one()
        assert report.id == result.report_id
        assert report.score == result.score
        assert report.details["tracking_enabled"] is True
        assert report.details["content_analysis"]["quality_score"] == 70
        assert [issue["title"] for issue in report.issues] == [issue.title for issue in result.issues]

        db_session.expire_all()
        site = await db_session.get(Website, TEST_WEBSITE_ID)
        assert site.seo_score == result.score
        assert site.last_analyzed_at is not None

        tracked = await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID)
        assert len(tracked) == len(result.issues)
        assert {issue.seo_report_id for issue in tracked} == {result.report_id}

    @pytest.mark.asyncio
    async def test_repeat_analysis_is_idempotent(self, seo_service, storage, website, clock):
        first = await seo_service.analyze_website(self.request())
        clock.advance(hours=1)

        second = await seo_service.analyze_website(self.request())

        assert [issue.title for issue in first.issues] == [issue.title for issue in second.issues]
        assert second.tracking.created == 0
        assert second.tracking.refreshed == len(second.issues)
        tracked = await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID)
        assert all(issue.status == IssueStatus.DETECTED for issue in tracked)

    @pytest.mark.asyncio
    async def test_skip_issue_tracking(self, seo_service, storage, website, db_session):
        result = await seo_service.analyze_website(self.request(skip_issue_tracking=True))

        assert result.report_id is not None
        assert result.tracking is None
        report = (await db_session.execute(select(SeoReport))).scalar_one()
        assert report.details["skip_issue_tracking"] is True
        assert await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID) == []

    @pytest.mark.asyncio
    async def test_unknown_website_is_not_fatal(self, seo_service, storage, db_session):
        """Storage problems are logged and the result is still returned."""
        result = await seo_service.analyze_website(self.request())

        assert result.score >= 0
        assert result.report_id is None
        assert (await db_session.execute(select(SeoReport))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_storage_failure_is_not_fatal(self, page_fetcher, site_probe, mock_storage):
        mock_storage.create_report = AsyncMock(side_effect=StorageError("database is locked"))
        service = SEOAnalysisService(
            storage=mock_storage,
            content_analyzer=ContentAnalyzer(None),
            fetcher=page_fetcher,
            speed_estimator=SpeedEstimator(fetcher=page_fetcher),
            site_probe=site_probe,
        )

        result = await service.analyze_website(self.request())

        assert result.report_id is None
        mock_storage.update_website.assert_not_called()

    @pytest.mark.asyncio
    async def test_issue_overview(self, seo_service, storage, website, clock):
        await seo_service.analyze_website(self.request())
        tracked = await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID)
        title = next(issue for issue in tracked if issue.issue_type == "missing_page_title")
        clock.advance(minutes=10)
        await seo_service.update_issue_status(
            title.id, IssueStatus.FIXED, fix_method=FixMethod.AI_AUTOMATIC, fix_session_id="fix-1"
        )

        overview = await seo_service.get_issue_overview(TEST_WEBSITE_ID, TEST_USER_ID)

        assert overview["summary"]["total_issues"] == len(tracked)
        assert overview["summary"]["fixed"] == 1
        [event] = overview["recent_activity"]
        assert event["issue_type"] == "missing_page_title"
        assert event["new_status"] == "fixed"
        assert event["fix_session_id"] == "fix-1"

    @pytest.mark.asyncio
    async def test_fixed_issue_suppressed_on_next_run(self, seo_service, storage, website, clock):
        """An issue fixed moments ago is not reopened by the next audit."""
        await seo_service.analyze_website(self.request())
        tracked = await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID)
        title = next(issue for issue in tracked if issue.issue_type == "missing_page_title")
        await seo_service.update_issue_status(title.id, IssueStatus.FIXED, fix_method=FixMethod.AI_AUTOMATIC)
        clock.advance(hours=1)

        result = await seo_service.analyze_website(self.request())

        assert result.tracking.suppressed == 1
        records = {issue.issue_type: issue for issue in await storage.get_tracked_issues(TEST_WEBSITE_ID, TEST_USER_ID)}
        assert records["missing_page_title"].status == IssueStatus.FIXED

    @pytest.mark.asyncio
    async def test_service_without_storage(self, page_fetcher, site_probe):
        service = SEOAnalysisService(
            content_analyzer=ContentAnalyzer(None),
            fetcher=page_fetcher,
            speed_estimator=SpeedEstimator(fetcher=page_fetcher),
            site_probe=site_probe,
        )

        result = await service.analyze_website(self.request())

        assert result.report_id is None
        with pytest.raises(StorageError):
            await service.get_issue_overview(TEST_WEBSITE_ID, TEST_USER_ID)


class TestRecentActivity:
    """Test flattening of status histories."""

    def test_newest_first_and_limited(self):
        class Record:
            def __init__(self, issue_type, history):
                self.id = uuid.uuid4()
                self.issue_type = issue_type
                self.issue_title = issue_type.replace("_", " ")
                self.details = {"status_history": history}

        records = [
            Record("thin_content", [{"new_status": "fixing", "timestamp": "2026-03-01T10:00:00+00:00"}]),
            Record("missing_h1_tag", [
                {"new_status": "fixing", "timestamp": "2026-03-01T09:00:00+00:00"},
                {"new_status": "fixed", "timestamp": "2026-03-01T11:00:00+00:00"},
            ]),
        ]

        events = extract_recent_activity(records, limit=2)

        assert [(e["issue_type"], e["new_status"]) for e in events] == [
            ("missing_h1_tag", "fixed"),
            ("thin_content", "fixing"),
        ]
