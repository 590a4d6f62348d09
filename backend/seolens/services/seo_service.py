"""
SEO analysis service.

Composes the fetcher, analyzers, issue detector, scorer, recommendation
generator and issue tracker into one audit run. Built once with its
collaborators injected (see ``build_seo_service``).
"""
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import async_sessionmaker

from seolens.config import settings
from seolens.core.exceptions import StorageError
from seolens.integrations.llm import LLMClient, create_llm_client
from seolens.integrations.pagespeed import PageSpeedClient
from seolens.models.base import utcnow
from seolens.models.issue import FixMethod, IssueStatus, TrackedSeoIssue
from seolens.services.content_analyzer import ContentAnalyzer, ContentSignals
from seolens.services.fetcher import PageFetcher, normalize_url
from seolens.services.issue_detector import Issue, detect_issues
from seolens.services.issue_tracker import IssueTracker, TrackingOutcome
from seolens.services.recommendations import Recommendation, generate_recommendations
from seolens.services.scoring import calculate_score
from seolens.services.speed_estimator import SpeedEstimator
from seolens.services.storage import DatabaseSeoStorage, SeoStorage
from seolens.services.technical_analyzer import (
    SiteProbeResult,
    TechnicalSignals,
    analyze_technical,
    probe_site_files,
)

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 10


@dataclass
class AnalysisOptions:
    skip_issue_tracking: bool = False


@dataclass
class AnalysisRequest:
    """One audit invocation."""
    url: str
    target_keywords: list[str] = field(default_factory=list)
    user_id: Optional[UUID] = None
    website_id: Optional[UUID] = None
    options: AnalysisOptions = field(default_factory=AnalysisOptions)


@dataclass
class AnalysisResult:
    """Output of one audit run."""
    url: str
    score: int
    issues: list[Issue]
    recommendations: list[Recommendation]
    page_speed_score: int
    technical_details: TechnicalSignals
    content_analysis: ContentSignals
    site_probes: SiteProbeResult
    tokens_used: int = 0
    ai_analysis_performed: bool = False
    report_id: Optional[UUID] = None
    tracking: Optional[TrackingOutcome] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "url": self.url,
            "score": self.score,
            "issues": [issue.to_dict() for issue in self.issues],
            "recommendations": [rec.to_dict() for rec in self.recommendations],
            "page_speed_score": self.page_speed_score,
            "technical_details": self.technical_details.to_dict(),
            "content_analysis": self.content_analysis.to_dict(),
            "site_probes": self.site_probes.to_dict(),
            "tokens_used": self.tokens_used,
            "ai_analysis_performed": self.ai_analysis_performed,
            "report_id": str(self.report_id) if self.report_id else None,
            "tracking": self.tracking.to_dict() if self.tracking else None,
        }


def extract_recent_activity(
    issues: list[TrackedSeoIssue],
    limit: int = RECENT_ACTIVITY_LIMIT,
) -> list[dict[str, Any]]:
    """Flatten the status histories of ``issues``, newest first."""
    events = []
    for issue in issues:
        for entry in (issue.details or {}).get("status_history", []):
            events.append({
                "issue_id": str(issue.id),
                "issue_type": issue.issue_type,
                "issue_title": issue.issue_title,
                **entry,
            })
    events.sort(key=lambda event: event.get("timestamp") or "", reverse=True)
    return events[:limit]


class SEOAnalysisService:
    """Runs page audits and keeps the issue history of each website."""

    def __init__(
        self,
        storage: SeoStorage | None = None,
        content_analyzer: ContentAnalyzer | None = None,
        speed_estimator: SpeedEstimator | None = None,
        fetcher: PageFetcher | None = None,
        tracker: IssueTracker | None = None,
        site_probe: Callable[[str], Awaitable[SiteProbeResult]] = probe_site_files,
        llm_client: LLMClient | None = None,
    ):
        self.storage = storage
        self.fetcher = fetcher or PageFetcher()
        self.llm_client = llm_client
        self.content_analyzer = content_analyzer or ContentAnalyzer(llm_client)
        self.speed_estimator = speed_estimator or SpeedEstimator(fetcher=self.fetcher)
        self.tracker = tracker or (IssueTracker(storage) if storage is not None else None)
        self.site_probe = site_probe

    async def analyze_website(self, request: AnalysisRequest) -> AnalysisResult:
        """
        Audit one page.

        Raises:
            FetchError: if the page itself cannot be retrieved
        """
        url = normalize_url(request.url)
        logger.info(f"Starting SEO analysis for {url}")

        page = await self.fetcher.fetch(url)

        technical, content_outcome, speed_score, probes = await asyncio.gather(
            asyncio.to_thread(analyze_technical, page.html, page.final_url),
            self.content_analyzer.analyze(page.html, request.target_keywords),
            self.speed_estimator.estimate(url),
            self.site_probe(url),
        )
        content = content_outcome.signals

        issues = detect_issues(technical, content, probes)
        recommendations = generate_recommendations(issues, technical, content)
        score = calculate_score(issues, technical, content, speed_score)

        result = AnalysisResult(
            url=url,
            score=score,
            issues=issues,
            recommendations=recommendations,
            page_speed_score=speed_score,
            technical_details=technical,
            content_analysis=content,
            site_probes=probes,
            tokens_used=content_outcome.tokens_used,
            ai_analysis_performed=not content_outcome.used_fallback,
        )
        logger.info(
            f"SEO analysis for {url} complete: score {score}, {len(issues)} issues, "
            f"{len(recommendations)} recommendations"
        )

        if self.storage is not None and request.user_id:
            await self._track_usage(request, content_outcome)
            if request.website_id:
                await self._persist(request, result)

        return result

    async def _track_usage(self, request: AnalysisRequest, outcome) -> None:
        if not outcome.tokens_used or self.llm_client is None:
            return
        try:
            await self.storage.track_ai_usage(
                user_id=request.user_id,
                website_id=request.website_id,
                provider=outcome.provider,
                model=outcome.model,
                tokens_used=outcome.tokens_used,
                cost_usd=self.llm_client.estimate_cost(outcome.tokens_used),
            )
        except StorageError as e:
            logger.error(f"Failed to record AI usage for user {request.user_id}: {e}")

    async def _persist(self, request: AnalysisRequest, result: AnalysisResult) -> None:
        tracking_enabled = not request.options.skip_issue_tracking
        try:
            website = await self.storage.get_website(request.website_id, request.user_id)
            if website is None:
                raise StorageError(f"Website {request.website_id} not found for user {request.user_id}")

            report = await self.storage.create_report({
                "website_id": request.website_id,
                "user_id": request.user_id,
                "url": result.url,
                "score": result.score,
                "page_speed_score": result.page_speed_score,
                "issues": [issue.to_dict() for issue in result.issues],
                "recommendations": [rec.to_dict() for rec in result.recommendations],
                "details": {
                    "technical_details": result.technical_details.to_dict(),
                    "content_analysis": result.content_analysis.to_dict(),
                    "site_probes": result.site_probes.to_dict(),
                    "analysis_url": result.url,
                    "target_keywords": request.target_keywords,
                    "ai_analysis_performed": result.ai_analysis_performed,
                    "tracking_enabled": tracking_enabled,
                    "skip_issue_tracking": request.options.skip_issue_tracking,
                    "timestamp": utcnow().isoformat(),
                },
            })
            result.report_id = report.id

            await self.storage.update_website(
                request.website_id,
                seo_score=result.score,
                last_analyzed_at=utcnow(),
            )

            if tracking_enabled and self.tracker is not None:
                result.tracking = await self.tracker.reconcile(
                    request.website_id,
                    request.user_id,
                    result.issues,
                    report_id=report.id,
                )
        except StorageError as e:
            logger.error(f"Failed to store SEO analysis for website {request.website_id}: {e}", exc_info=True)

    async def get_issue_overview(self, website_id: UUID, user_id: UUID) -> dict[str, Any]:
        """Tracked issues, tracking summary and recent lifecycle events for a website."""
        if self.storage is None:
            raise StorageError("No storage configured")

        issues = await self.storage.get_tracked_issues(
            website_id, user_id, limit=settings.RECENT_ISSUE_LIMIT
        )
        summary = await self.storage.get_issue_tracking_summary(website_id, user_id)
        return {
            "tracked_issues": issues,
            "summary": summary,
            "recent_activity": extract_recent_activity(issues),
        }

    async def update_issue_status(
        self,
        issue_id: UUID,
        status: IssueStatus,
        fix_method: FixMethod | None = None,
        fix_session_id: str | None = None,
        notes: str | None = None,
    ) -> Optional[TrackedSeoIssue]:
        """Record a status change made by an external remediation process."""
        if self.storage is None:
            raise StorageError("No storage configured")

        fields: dict[str, Any] = {}
        if fix_method is not None:
            fields["fix_method"] = fix_method
        if fix_session_id is not None:
            fields["fix_session_id"] = fix_session_id
        if notes is not None:
            fields["resolution_notes"] = notes
        return await self.storage.update_issue_status(issue_id, status, **fields)

    async def close(self) -> None:
        if self.llm_client is not None:
            await self.llm_client.close()


def build_seo_service(session_maker: async_sessionmaker | None = None) -> SEOAnalysisService:
    """Compose the service from configuration."""
    if session_maker is None:
        from seolens.database import async_session_maker as session_maker

    fetcher = PageFetcher()
    llm_client = create_llm_client()
    pagespeed = PageSpeedClient()

    return SEOAnalysisService(
        storage=DatabaseSeoStorage(session_maker),
        fetcher=fetcher,
        llm_client=llm_client,
        speed_estimator=SpeedEstimator(
            pagespeed=pagespeed if pagespeed.is_configured else None,
            fetcher=fetcher,
        ),
    )
