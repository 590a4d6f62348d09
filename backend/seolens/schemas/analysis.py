"""
Analysis request/response schemas.
"""
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from seolens.models.issue import FixMethod, IssueSeverity, IssueStatus
from seolens.services.seo_service import AnalysisOptions, AnalysisRequest


class AnalyzeOptions(BaseModel):
    skip_issue_tracking: bool = Field(
        default=False,
        description="Persist the report but leave tracked issues untouched",
    )


class AnalyzeRequest(BaseModel):
    """Request body for a page analysis."""

    url: str = Field(..., min_length=1, description="Page URL (https:// is added if missing)")
    target_keywords: list[str] = Field(default_factory=list, description="Keywords the page should rank for")
    user_id: Optional[UUID] = Field(default=None, description="Owner of the website")
    website_id: Optional[UUID] = Field(default=None, description="Website the report belongs to")
    options: AnalyzeOptions = Field(default_factory=AnalyzeOptions)

    def to_analysis_request(self) -> AnalysisRequest:
        return AnalysisRequest(
            url=self.url,
            target_keywords=self.target_keywords,
            user_id=self.user_id,
            website_id=self.website_id,
            options=AnalysisOptions(skip_issue_tracking=self.options.skip_issue_tracking),
        )

    class Config:
        json_schema_extra = {
            "example": {
                "url": "https://example.com/blog/seo-guide",
                "target_keywords": ["seo guide", "technical seo"],
                "user_id": "00000000-0000-0000-0000-000000000001",
                "website_id": "00000000-0000-0000-0000-000000000002",
                "options": {"skip_issue_tracking": False},
            }
        }


class IssueSchema(BaseModel):
    severity: IssueSeverity
    title: str
    description: str
    affected_pages: int
    auto_fix_available: bool


class RecommendationSchema(BaseModel):
    priority: str
    title: str
    description: str
    impact: str


class AnalyzeResponse(BaseModel):
    """Result of a page analysis."""

    url: str
    score: int = Field(..., ge=0, le=100)
    issues: list[IssueSchema]
    recommendations: list[RecommendationSchema]
    page_speed_score: int
    technical_details: dict[str, Any]
    content_analysis: dict[str, Any]
    site_probes: dict[str, bool]
    tokens_used: int = 0
    ai_analysis_performed: bool = False
    report_id: Optional[UUID] = None
    tracking: Optional[dict[str, int]] = None


class AnalyzeTaskResponse(BaseModel):
    task_id: str
    status: str


class TaskStatusResponse(BaseModel):
    task_id: str
    status: str
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None


class TrackedIssueResponse(BaseModel):
    """A tracked issue row as returned by the API."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    website_id: UUID
    issue_type: str
    issue_title: str
    issue_description: Optional[str] = None
    severity: IssueSeverity
    status: IssueStatus
    auto_fix_available: bool
    element_path: Optional[str] = None
    current_value: Optional[str] = None
    recommended_value: Optional[str] = None
    fix_method: Optional[FixMethod] = None
    previous_status: Optional[IssueStatus] = None
    resolution_notes: Optional[str] = None
    resolved_automatically: bool = False
    detected_at: Optional[datetime] = None
    last_seen_at: Optional[datetime] = None
    fixed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    reappeared_at: Optional[datetime] = None


class IssueTrackingSummary(BaseModel):
    total_issues: int
    detected: int
    fixing: int
    fixed: int
    resolved: int
    reappeared: int
    auto_fixable: int
    completion_percentage: int
    last_activity: Optional[datetime] = None


class IssueOverviewResponse(BaseModel):
    tracked_issues: list[TrackedIssueResponse]
    summary: IssueTrackingSummary
    recent_activity: list[dict[str, Any]]


class IssueStatusUpdate(BaseModel):
    """Status change reported by a remediation process."""

    status: IssueStatus
    fix_method: Optional[FixMethod] = None
    fix_session_id: Optional[str] = None
    notes: Optional[str] = None
