"""
Persistence for analysis reports and tracked issues.

``SeoStorage`` is the interface the analysis service and issue tracker
depend on; ``DatabaseSeoStorage`` implements it with SQLAlchemy. Every
method runs in its own short transaction so the storage object can be
shared by concurrent analysis runs.
"""
import asyncio
import hashlib
import logging
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Callable, Optional, Protocol, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from seolens.core.exceptions import StorageError
from seolens.models.base import utcnow
from seolens.models.issue import FixMethod, IssueSeverity, IssueStatus, TrackedSeoIssue
from seolens.models.report import SeoReport
from seolens.models.usage import AiUsage
from seolens.models.website import Website

logger = logging.getLogger(__name__)

# Columns an issue update may set alongside a status change
ISSUE_UPDATE_FIELDS = {
    "issue_title",
    "issue_description",
    "severity",
    "last_seen_at",
    "fixed_at",
    "resolved_at",
    "reappeared_at",
    "fix_method",
    "fix_session_id",
    "previous_status",
    "resolution_notes",
    "resolved_automatically",
    "current_value",
    "recommended_value",
}

WEBSITE_UPDATE_FIELDS = {"seo_score", "last_analyzed_at", "name", "url"}


class SeoStorage(Protocol):
    """Persistence operations used by the analysis engine."""

    def lock_website(self, website_id: UUID) -> AbstractAsyncContextManager[None]: ...

    async def get_website(self, website_id: UUID, user_id: UUID) -> Optional[Website]: ...

    async def create_report(self, report: dict[str, Any]) -> SeoReport: ...

    async def update_website(self, website_id: UUID, **fields: Any) -> Optional[Website]: ...

    async def get_tracked_issues(
        self,
        website_id: UUID,
        user_id: UUID,
        status: IssueStatus | Sequence[IssueStatus] | None = None,
        auto_fix_only: bool = False,
        limit: int | None = None,
    ) -> list[TrackedSeoIssue]: ...

    async def create_or_update_issue(self, issue: dict[str, Any]) -> TrackedSeoIssue: ...

    async def update_issue_status(
        self,
        issue_id: UUID,
        status: IssueStatus,
        **fields: Any,
    ) -> Optional[TrackedSeoIssue]: ...

    async def get_issue_tracking_summary(self, website_id: UUID, user_id: UUID) -> dict[str, Any]: ...

    async def track_ai_usage(
        self,
        user_id: UUID,
        website_id: UUID | None,
        provider: str,
        model: str | None,
        tokens_used: int,
        cost_usd: float,
        operation: str = "seo_analysis",
    ) -> None: ...


def issue_hash(website_id: UUID, issue_type: str, title: str) -> str:
    raw = f"{website_id}:{issue_type}:{title.lower()}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()[:16]


class WebsiteLocks:
    """One asyncio.Lock per website for reconciliations within this process."""

    def __init__(self):
        self._locks: dict[str, asyncio.Lock] = {}

    def get(self, website_id: UUID | str) -> asyncio.Lock:
        key = str(website_id)
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]


class DatabaseSeoStorage:
    """SQLAlchemy implementation of SeoStorage."""

    def __init__(
        self,
        session_maker: async_sessionmaker,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.session_maker = session_maker
        self.clock = clock
        self.local_locks = WebsiteLocks()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except SQLAlchemyError as e:
                await session.rollback()
                raise StorageError(f"Database operation failed: {e}") from e

    @asynccontextmanager
    async def lock_website(self, website_id: UUID) -> AsyncGenerator[None, None]:
        """
        Hold the reconciliation lock for a website.

        Within one process an asyncio.Lock serializes callers. On PostgreSQL
        the website row is also locked FOR NO KEY UPDATE for the duration, so
        workers in other processes wait for each other too. That lock mode
        still lets issue inserts pass their foreign key check. SQLite has no
        row locks; the unique issue key still prevents duplicate rows there.
        """
        async with self.local_locks.get(website_id):
            async with self.session_maker() as session:
                if session.bind.dialect.name == "sqlite":
                    yield
                    return
                try:
                    await session.execute(
                        select(Website.id)
                        .where(Website.id == website_id)
                        .with_for_update(no_key_update=True)
                    )
                except SQLAlchemyError as e:
                    await session.rollback()
                    raise StorageError(f"Could not lock website {website_id}: {e}") from e
                try:
                    yield
                finally:
                    await session.rollback()

    # ------------------------------------------------------------------
    # Websites and reports
    # ------------------------------------------------------------------

    async def get_website(self, website_id: UUID, user_id: UUID) -> Optional[Website]:
        async with self._session() as session:
            result = await session.execute(
                select(Website).where(
                    Website.id == website_id,
                    Website.user_id == user_id,
                )
            )
            return result.scalar_one_or_none()

    async def update_website(self, website_id: UUID, **fields: Any) -> Optional[Website]:
        async with self._session() as session:
            website = await session.get(Website, website_id)
            if website is None:
                return None
            for key, value in fields.items():
                if key in WEBSITE_UPDATE_FIELDS:
                    setattr(website, key, value)
            await session.flush()
            return website

    async def create_report(self, report: dict[str, Any]) -> SeoReport:
        async with self._session() as session:
            record = SeoReport(**report)
            session.add(record)
            await session.flush()
            logger.info(f"Stored SEO report {record.id} (score {record.score}) for website {record.website_id}")
            return record

    async def track_ai_usage(
        self,
        user_id: UUID,
        website_id: UUID | None,
        provider: str,
        model: str | None,
        tokens_used: int,
        cost_usd: float,
        operation: str = "seo_analysis",
    ) -> None:
        async with self._session() as session:
            session.add(AiUsage(
                user_id=user_id,
                website_id=website_id,
                provider=provider,
                model=model,
                operation=operation,
                tokens_used=tokens_used,
                cost_usd=cost_usd,
            ))

    # ------------------------------------------------------------------
    # Tracked issues
    # ------------------------------------------------------------------

    async def get_tracked_issues(
        self,
        website_id: UUID,
        user_id: UUID,
        status: IssueStatus | Sequence[IssueStatus] | None = None,
        auto_fix_only: bool = False,
        limit: int | None = None,
    ) -> list[TrackedSeoIssue]:
        query = select(TrackedSeoIssue).where(
            TrackedSeoIssue.website_id == website_id,
            TrackedSeoIssue.user_id == user_id,
        )
        if isinstance(status, IssueStatus):
            query = query.where(TrackedSeoIssue.status == status)
        elif status:
            query = query.where(TrackedSeoIssue.status.in_(list(status)))
        if auto_fix_only:
            query = query.where(TrackedSeoIssue.auto_fix_available.is_(True))

        query = query.order_by(
            TrackedSeoIssue.last_seen_at.desc(),
            TrackedSeoIssue.created_at.desc(),
        )
        if limit:
            query = query.limit(limit)

        async with self._session() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def create_or_update_issue(self, issue: dict[str, Any]) -> TrackedSeoIssue:
        """
        Insert a newly detected issue, or refresh the record with the same
        website, user, type and title.

        The key is unique in the table. If another writer inserts the same
        issue between our lookup and insert, the insert is rolled back and
        that writer's row is refreshed instead.
        """
        now = self.clock()

        async with self._session() as session:
            record = await self._find_issue(session, issue)
            if record is not None:
                self._refresh_issue(record, issue, now)
                await session.flush()
                return record

            record = TrackedSeoIssue(
                website_id=issue["website_id"],
                user_id=issue["user_id"],
                seo_report_id=issue.get("seo_report_id"),
                issue_type=issue["issue_type"],
                issue_title=issue["issue_title"],
                issue_description=issue.get("issue_description"),
                severity=IssueSeverity(issue["severity"]),
                status=IssueStatus.DETECTED,
                auto_fix_available=issue.get("auto_fix_available", False),
                element_path=issue.get("element_path"),
                current_value=issue.get("current_value"),
                recommended_value=issue.get("recommended_value"),
                detected_at=now,
                last_seen_at=now,
                resolved_automatically=False,
                details={
                    "issue_hash": issue_hash(issue["website_id"], issue["issue_type"], issue["issue_title"]),
                    "first_detected_in_report": (
                        str(issue["seo_report_id"]) if issue.get("seo_report_id") else None
                    ),
                    "detection_count": 1,
                    "status_history": [],
                },
            )
            session.add(record)
            try:
                await session.flush()
                return record
            except IntegrityError:
                await session.rollback()
                logger.info(f"Issue '{issue['issue_title']}' was inserted concurrently, refreshing it")

            record = await self._find_issue(session, issue)
            if record is None:
                raise StorageError(f"Could not store issue '{issue['issue_title']}'")
            self._refresh_issue(record, issue, now)
            await session.flush()
            return record

    @staticmethod
    async def _find_issue(session: AsyncSession, issue: dict[str, Any]) -> Optional[TrackedSeoIssue]:
        result = await session.execute(
            select(TrackedSeoIssue).where(
                TrackedSeoIssue.website_id == issue["website_id"],
                TrackedSeoIssue.user_id == issue["user_id"],
                TrackedSeoIssue.issue_type == issue["issue_type"],
                TrackedSeoIssue.issue_title == issue["issue_title"],
            )
        )
        return result.scalars().first()

    @staticmethod
    def _refresh_issue(record: TrackedSeoIssue, issue: dict[str, Any], now: datetime) -> None:
        record.issue_description = issue.get("issue_description")
        record.severity = IssueSeverity(issue["severity"])
        record.auto_fix_available = issue.get("auto_fix_available", False)
        record.element_path = issue.get("element_path")
        record.current_value = issue.get("current_value")
        record.recommended_value = issue.get("recommended_value")
        record.seo_report_id = issue.get("seo_report_id") or record.seo_report_id
        record.last_seen_at = now
        details = dict(record.details or {})
        details["detection_count"] = details.get("detection_count", 1) + 1
        record.details = details

    async def update_issue_status(
        self,
        issue_id: UUID,
        status: IssueStatus,
        **fields: Any,
    ) -> Optional[TrackedSeoIssue]:
        """
        Move an issue to ``status`` and apply ``fields``.

        Status timestamps and the status history entry are only written
        when the status actually changes; a same-status call just applies
        the fields (used to refresh last_seen_at).
        """
        unknown = set(fields) - ISSUE_UPDATE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update issue fields: {', '.join(sorted(unknown))}")

        now = self.clock()

        async with self._session() as session:
            record = await session.get(TrackedSeoIssue, issue_id)
            if record is None:
                logger.warning(f"Tracked issue {issue_id} not found")
                return None

            previous = record.status
            fix_method = fields.get("fix_method")
            if fix_method is not None:
                fields["fix_method"] = FixMethod(fix_method)

            if previous != status:
                record.status = status
                details = dict(record.details or {})
                if status == IssueStatus.FIXED:
                    record.fixed_at = fields.pop("fixed_at", None) or now
                elif status == IssueStatus.RESOLVED:
                    record.resolved_at = fields.pop("resolved_at", None) or now
                elif status == IssueStatus.FIXING:
                    details["fix_attempts"] = details.get("fix_attempts", 0) + 1

                history = list(details.get("status_history", []))
                history.append({
                    "previous_status": previous.value if previous else None,
                    "new_status": status.value,
                    "timestamp": now.isoformat(),
                    "fix_method": fix_method.value if isinstance(fix_method, FixMethod) else fix_method,
                    "fix_session_id": fields.get("fix_session_id"),
                })
                details["status_history"] = history
                record.details = details

            if "severity" in fields:
                fields["severity"] = IssueSeverity(fields["severity"])
            for key, value in fields.items():
                setattr(record, key, value)
            record.updated_at = now

            await session.flush()
            return record

    async def get_issue_tracking_summary(self, website_id: UUID, user_id: UUID) -> dict[str, Any]:
        issues = await self.get_tracked_issues(website_id, user_id)

        counts = {status: 0 for status in IssueStatus}
        for issue in issues:
            counts[issue.status] += 1

        total = len(issues)
        done = counts[IssueStatus.FIXED] + counts[IssueStatus.RESOLVED]
        seen = [issue.last_seen_at for issue in issues if issue.last_seen_at]

        return {
            "total_issues": total,
            "detected": counts[IssueStatus.DETECTED],
            "fixing": counts[IssueStatus.FIXING],
            "fixed": counts[IssueStatus.FIXED],
            "resolved": counts[IssueStatus.RESOLVED],
            "reappeared": counts[IssueStatus.REAPPEARED],
            "auto_fixable": sum(1 for issue in issues if issue.auto_fix_available),
            "completion_percentage": round(done / total * 100) if total else 0,
            "last_activity": max(seen) if seen else None,
        }
