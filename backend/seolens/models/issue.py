"""
Tracked SEO issue model.

One row is the history of one normalized issue type on one website. Rows
are status-mutated on every analysis run and never hard-deleted.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)

from seolens.models.base import Base, BaseModel, JSONType, website_fk


class IssueStatus(str, PyEnum):
    """Lifecycle states of a tracked issue."""
    DETECTED = "detected"
    FIXING = "fixing"
    FIXED = "fixed"
    RESOLVED = "resolved"
    REAPPEARED = "reappeared"


class IssueSeverity(str, PyEnum):
    """Issue severity levels."""
    CRITICAL = "critical"
    WARNING = "warning"
    INFO = "info"


class FixMethod(str, PyEnum):
    """How an issue was fixed."""
    AI_AUTOMATIC = "ai_automatic"
    MANUAL = "manual"


class TrackedSeoIssue(Base, BaseModel):
    """Persisted lifecycle of one issue type on one website."""

    __tablename__ = "tracked_seo_issues"
    __table_args__ = (
        UniqueConstraint(
            "website_id", "user_id", "issue_type", "issue_title",
            name="uq_tracked_issue_key",
        ),
    )

    website_id = website_fk()
    seo_report_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("seo_reports.id", ondelete="SET NULL"),
        nullable=True,
    )

    issue_type = Column(String(100), nullable=False, index=True)
    issue_title = Column(String(255), nullable=False)
    issue_description = Column(Text, nullable=True)
    severity = Column(Enum(IssueSeverity), nullable=False)
    status = Column(
        Enum(IssueStatus),
        default=IssueStatus.DETECTED,
        nullable=False,
        index=True,
    )
    auto_fix_available = Column(Boolean, default=False, nullable=False)

    element_path = Column(String(255), nullable=True)
    current_value = Column(Text, nullable=True)
    recommended_value = Column(Text, nullable=True)

    # Lifecycle bookkeeping
    detected_at = Column(DateTime(timezone=True), nullable=True)
    last_seen_at = Column(DateTime(timezone=True), nullable=True)
    fixed_at = Column(DateTime(timezone=True), nullable=True)
    resolved_at = Column(DateTime(timezone=True), nullable=True)
    reappeared_at = Column(DateTime(timezone=True), nullable=True)
    fix_method = Column(Enum(FixMethod), nullable=True)
    fix_session_id = Column(String(100), nullable=True)
    previous_status = Column(Enum(IssueStatus), nullable=True)
    resolution_notes = Column(Text, nullable=True)
    resolved_automatically = Column(Boolean, default=False, nullable=False)

    # issue_hash, first_detected_in_report, detection_count, fix_attempts,
    # status_history
    details = Column(JSONType, default=dict, nullable=False)

    def __repr__(self) -> str:
        return f"<TrackedSeoIssue {self.issue_type} [{self.status}]>"
