"""
Issue lifecycle tracking across analysis runs.

Each run's issues are reconciled against the website's persisted
TrackedSeoIssues:

    detected -> fixing -> fixed | resolved -> reappeared -> ...

Issues that were fixed or resolved recently are not reopened while inside
their grace period, so a fix that has not propagated yet does not produce a
false alarm. Active issues that disappear are resolved automatically.
"""
import logging
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Optional
from uuid import UUID

from seolens.config import settings
from seolens.core.exceptions import StorageError
from seolens.models.base import utcnow
from seolens.models.issue import FixMethod, IssueStatus, TrackedSeoIssue
from seolens.services.issue_detector import Issue
from seolens.services.storage import SeoStorage

logger = logging.getLogger(__name__)

ACTIVE_STATUSES = (IssueStatus.DETECTED, IssueStatus.REAPPEARED)
QUIESCENT_STATUSES = (IssueStatus.FIXED, IssueStatus.RESOLVED)

# Titles produced by the issue detector
TRACKING_TYPE_BY_TITLE = {
    "Missing Page Title": "missing_page_title",
    "Title Tag Too Long": "poor_title_tag",
    "Title Tag Too Short": "poor_title_tag",
    "Missing Meta Description": "missing_meta_description",
    "Meta Description Too Long": "poor_meta_description",
    "Meta Description Too Short": "poor_meta_description",
    "Missing H1 Tag": "missing_h1_tag",
    "Multiple H1 Tags": "multiple_h1_tags",
    "Improper Heading Hierarchy": "heading_structure",
    "Images Missing Alt Text": "missing_alt_text",
    "Images Missing Dimensions": "missing_image_dimensions",
    "Images Missing Lazy Loading": "images_missing_lazy_loading",
    "Missing Viewport Meta Tag": "missing_viewport_meta",
    "Not Mobile Responsive": "mobile_responsiveness",
    "Missing Schema Markup": "missing_schema",
    "Missing FAQ Schema": "missing_faq_schema",
    "Missing Breadcrumbs": "missing_breadcrumbs",
    "Missing Open Graph Tags": "missing_og_tags",
    "Missing Twitter Cards": "missing_twitter_cards",
    "Missing Canonical URL": "missing_canonical_url",
    "Poor Internal Linking": "poor_internal_linking",
    "Broken Internal Links": "broken_internal_links",
    "External Links Missing Attributes": "external_links_missing_attributes",
    "Orphan Page": "orphan_pages",
    "Low Content Quality": "low_content_quality",
    "Poor Readability": "poor_readability",
    "Low E-A-T Score": "low_eat_score",
    "Poor Keyword Distribution": "poor_keyword_distribution",
    "Keyword Over-Optimization": "keyword_over_optimization",
    "Missing Important Keywords": "missing_important_keywords",
    "Poor Content Structure": "poor_content_structure",
    "Poor User Intent Alignment": "poor_user_intent",
    "Low Content Uniqueness": "low_content_uniqueness",
    "Thin Content": "thin_content",
    "Duplicate Content Risk": "duplicate_content",
    "Missing XML Sitemap": "missing_xml_sitemap",
    "Robots.txt Issues": "robots_txt_issues",
}

# Fallback for other wordings; first match wins
TRACKING_TYPE_KEYWORDS = [
    ("missing_meta_description", ["meta description"]),
    ("duplicate_meta_descriptions", ["duplicate meta"]),
    ("poor_title_tag", ["title tag", "page title"]),
    ("heading_structure", ["h1", "heading", "hierarchy"]),
    ("missing_alt_text", ["alt text", "image alt"]),
    ("unoptimized_images", ["unoptimized image", "image size", "image compression"]),
    ("missing_image_dimensions", ["image dimension", "width height"]),
    ("images_missing_lazy_loading", ["lazy loading", "loading attribute"]),
    ("missing_faq_schema", ["faq schema", "faq"]),
    ("missing_schema", ["schema", "structured data", "json-ld"]),
    ("missing_breadcrumbs", ["breadcrumb"]),
    ("missing_og_tags", ["open graph", "og:"]),
    ("missing_twitter_cards", ["twitter card", "twitter:"]),
    ("broken_internal_links", ["broken link", "404", "dead link"]),
    ("poor_internal_linking", ["internal link", "internal linking"]),
    ("external_links_missing_attributes", ["external link", "nofollow", "noopener"]),
    ("orphan_pages", ["orphan page", "no inbound links"]),
    ("thin_content", ["thin content", "word count"]),
    ("duplicate_content", ["duplicate content"]),
    ("low_content_quality", ["content quality"]),
    ("poor_readability", ["readability"]),
    ("low_eat_score", ["e-a-t", "expertise", "authority", "trust"]),
    ("keyword_optimization", ["keyword"]),
    ("poor_user_intent", ["user intent", "search intent"]),
    ("low_content_uniqueness", ["content uniqueness", "uniqueness", "original"]),
    ("poor_content_structure", ["content structure", "organization"]),
    ("missing_viewport_meta", ["viewport"]),
    ("mobile_responsiveness", ["mobile", "responsive"]),
    ("missing_canonical_url", ["canonical"]),
    ("missing_xml_sitemap", ["sitemap", "xml sitemap"]),
    ("robots_txt_issues", ["robots.txt", "robots txt"]),
    ("unoptimized_permalinks", ["permalink", "url structure"]),
    ("redirect_chains", ["redirect chain", "redirect"]),
]

# Two titles mentioning the same term describe the same issue
SAME_ISSUE_TERMS = [
    "meta description",
    "title tag",
    "h1",
    "alt text",
    "viewport",
    "schema",
    "content quality",
    "readability",
]


def map_issue_to_tracking_type(title: str) -> str:
    """Normalize an issue title to its tracking type."""
    if title in TRACKING_TYPE_BY_TITLE:
        return TRACKING_TYPE_BY_TITLE[title]

    lowered = title.lower()
    for issue_type, keywords in TRACKING_TYPE_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return issue_type
    return "other"


def is_same_issue(existing_title: str, new_title: str) -> bool:
    existing = existing_title.lower()
    new = new_title.lower()
    if existing == new:
        return True
    return any(term in existing and term in new for term in SAME_ISSUE_TERMS)


def generate_element_path(title: str) -> Optional[str]:
    """CSS selector of the element an issue refers to, when there is one."""
    lowered = title.lower()
    if "title" in lowered:
        return "title"
    if "meta description" in lowered:
        return 'meta[name="description"]'
    if "h1" in lowered:
        return "h1"
    if "viewport" in lowered:
        return 'meta[name="viewport"]'
    if "alt text" in lowered:
        return "img"
    if "canonical" in lowered:
        return 'link[rel="canonical"]'
    if "open graph" in lowered:
        return 'meta[property^="og:"]'
    if "twitter" in lowered:
        return 'meta[name^="twitter:"]'
    return None


def extract_current_value(issue: Issue) -> Optional[str]:
    lowered = issue.title.lower()
    if "missing" in lowered:
        return "Not present"
    if "too long" in lowered or "too short" in lowered:
        match = re.search(r"(\d+) characters", issue.description)
        if match:
            return f"{match.group(1)} characters"
    return None


def generate_recommended_value(issue: Issue) -> Optional[str]:
    lowered = issue.title.lower()
    missing = "missing" in lowered

    if "meta description" in lowered:
        return "Add 120-160 character meta description" if missing else "Optimize to 120-160 characters"
    if "title" in lowered:
        return "Add 30-60 character title tag" if missing else "Optimize to 30-60 characters"
    if "alt text" in lowered:
        return "Add descriptive alt text to images"
    if "h1" in lowered:
        return "Add one H1 heading" if missing else "Use only one H1 per page"
    if "viewport" in lowered:
        return '<meta name="viewport" content="width=device-width, initial-scale=1">'
    if "canonical" in lowered:
        return "Add a canonical link pointing to the preferred URL"
    return None


def ensure_aware(value: datetime) -> datetime:
    """Treat naive timestamps (SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class TrackingOutcome:
    """What one reconciliation pass did."""
    created: int = 0
    refreshed: int = 0
    suppressed: int = 0
    reappeared: int = 0
    reset: int = 0
    auto_resolved: int = 0
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


class IssueTracker:
    """Reconciles detected issues with their persisted lifecycle."""

    def __init__(
        self,
        storage: SeoStorage,
        clock: Callable[[], datetime] = utcnow,
        ai_fix_grace_hours: float | None = None,
        manual_fix_grace_hours: float | None = None,
    ):
        self.storage = storage
        self.clock = clock
        self.ai_fix_grace_hours = (
            ai_fix_grace_hours if ai_fix_grace_hours is not None
            else settings.GRACE_PERIOD_AI_FIX_HOURS
        )
        self.manual_fix_grace_hours = (
            manual_fix_grace_hours if manual_fix_grace_hours is not None
            else settings.GRACE_PERIOD_MANUAL_FIX_HOURS
        )

    def grace_period_hours(self, record: TrackedSeoIssue) -> float:
        if record.status == IssueStatus.FIXED and record.fix_method == FixMethod.AI_AUTOMATIC:
            return self.ai_fix_grace_hours
        return self.manual_fix_grace_hours

    def hours_since_status_change(self, record: TrackedSeoIssue, now: datetime) -> float:
        if record.status == IssueStatus.FIXED:
            changed_at = record.fixed_at
        else:
            changed_at = record.resolved_at
        changed_at = changed_at or record.updated_at or now
        return (now - ensure_aware(changed_at)).total_seconds() / 3600

    @staticmethod
    def find_existing_issue(
        existing: list[TrackedSeoIssue],
        issue: Issue,
        issue_type: str,
        current_types: set[str],
    ) -> Optional[TrackedSeoIssue]:
        """
        Locate the record for ``issue``: same type and title, then same type,
        then a record of a type not seen this run whose title describes the
        same problem.
        """
        same_type = [r for r in existing if r.issue_type == issue_type]
        for record in same_type:
            if record.issue_title.lower() == issue.title.lower():
                return record
        if same_type:
            return same_type[0]

        for record in existing:
            if record.issue_type not in current_types and is_same_issue(record.issue_title, issue.title):
                return record
        return None

    def build_tracked_issue(
        self,
        issue: Issue,
        issue_type: str,
        website_id: UUID,
        user_id: UUID,
        report_id: UUID | None,
    ) -> dict[str, Any]:
        return {
            "website_id": website_id,
            "user_id": user_id,
            "seo_report_id": report_id,
            "issue_type": issue_type,
            "issue_title": issue.title,
            "issue_description": issue.description,
            "severity": issue.severity,
            "auto_fix_available": issue.auto_fix_available,
            "element_path": generate_element_path(issue.title),
            "current_value": extract_current_value(issue),
            "recommended_value": generate_recommended_value(issue),
        }

    async def reconcile(
        self,
        website_id: UUID,
        user_id: UUID,
        issues: list[Issue],
        report_id: UUID | None = None,
    ) -> TrackingOutcome:
        """
        Apply this run's issues to the website's tracked issue history.

        Runs for the same website are serialized through the storage lock.
        A storage failure on one issue is logged and counted in
        ``TrackingOutcome.failed``; the remaining issues are still applied.
        """
        async with self.storage.lock_website(website_id):
            return await self._reconcile(website_id, user_id, issues, report_id)

    async def _reconcile(
        self,
        website_id: UUID,
        user_id: UUID,
        issues: list[Issue],
        report_id: UUID | None,
    ) -> TrackingOutcome:
        existing = await self.storage.get_tracked_issues(
            website_id, user_id, limit=settings.TRACKED_ISSUE_LIMIT
        )
        now = self.clock()
        outcome = TrackingOutcome()

        typed_issues = [(issue, map_issue_to_tracking_type(issue.title)) for issue in issues]
        current_types = {issue_type for _, issue_type in typed_issues}
        matched_ids: set[UUID] = set()

        for issue, issue_type in typed_issues:
            record = self.find_existing_issue(existing, issue, issue_type, current_types)

            if record is None:
                try:
                    created = await self.storage.create_or_update_issue(
                        self.build_tracked_issue(issue, issue_type, website_id, user_id, report_id)
                    )
                except StorageError as e:
                    logger.warning(f"[Tracker] Could not record '{issue.title}': {e}")
                    outcome.failed += 1
                    continue
                existing.append(created)
                matched_ids.add(created.id)
                outcome.created += 1
                continue

            if record.id in matched_ids:
                continue
            matched_ids.add(record.id)

            try:
                await self._apply_detection(record, issue, now, outcome)
            except StorageError as e:
                logger.warning(f"[Tracker] Could not update '{record.issue_title}': {e}")
                outcome.failed += 1

        for record in existing:
            if record.id in matched_ids or record.status not in ACTIVE_STATUSES:
                continue
            if record.issue_type in current_types:
                continue
            try:
                await self.storage.update_issue_status(
                    record.id,
                    IssueStatus.RESOLVED,
                    resolved_at=now,
                    resolved_automatically=True,
                    resolution_notes="Issue no longer detected in latest analysis",
                )
            except StorageError as e:
                logger.warning(f"[Tracker] Could not auto-resolve '{record.issue_title}': {e}")
                outcome.failed += 1
                continue
            outcome.auto_resolved += 1

        logger.info(
            f"[Tracker] website {website_id}: {outcome.created} new, "
            f"{outcome.reappeared} reappeared, {outcome.refreshed} still open, "
            f"{outcome.suppressed} in grace period, {outcome.reset} reset, "
            f"{outcome.auto_resolved} auto-resolved, {outcome.failed} failed"
        )
        return outcome

    async def _apply_detection(
        self,
        record: TrackedSeoIssue,
        issue: Issue,
        now: datetime,
        outcome: TrackingOutcome,
    ) -> None:
        status = record.status

        if status in QUIESCENT_STATUSES:
            hours = self.hours_since_status_change(record, now)
            grace = self.grace_period_hours(record)
            if hours < grace:
                logger.debug(
                    f"[Tracker] '{record.issue_title}' {status.value} {hours:.1f}h ago, "
                    f"within {grace}h grace period"
                )
                await self.storage.update_issue_status(record.id, status, last_seen_at=now)
                outcome.suppressed += 1
                return

            await self.storage.update_issue_status(
                record.id,
                IssueStatus.REAPPEARED,
                previous_status=status,
                reappeared_at=now,
                last_seen_at=now,
                resolved_automatically=False,
                resolution_notes=f"Issue detected again after {hours:.1f}h grace period",
            )
            outcome.reappeared += 1
            return

        if status == IssueStatus.FIXING:
            await self.storage.update_issue_status(
                record.id,
                IssueStatus.DETECTED,
                last_seen_at=now,
                resolution_notes="Reset from stuck fixing status during new analysis",
            )
            outcome.reset += 1
            return

        await self.storage.update_issue_status(
            record.id,
            status,
            last_seen_at=now,
            issue_title=issue.title,
            issue_description=issue.description,
            severity=issue.severity,
            current_value=extract_current_value(issue),
            recommended_value=generate_recommended_value(issue),
        )
        outcome.refreshed += 1
