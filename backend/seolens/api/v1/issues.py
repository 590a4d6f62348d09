"""
Tracked issue endpoints.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from seolens.core.deps import get_seo_service
from seolens.core.exceptions import NotFoundError
from seolens.schemas.analysis import (
    IssueOverviewResponse,
    IssueStatusUpdate,
    TrackedIssueResponse,
)
from seolens.services.seo_service import SEOAnalysisService

router = APIRouter(tags=["Issues"])


@router.get(
    "/websites/{website_id}/issues",
    response_model=IssueOverviewResponse,
    summary="Issue tracking overview for a website",
)
async def get_website_issues(
    website_id: UUID,
    user_id: UUID = Query(..., description="Owner of the website"),
    service: SEOAnalysisService = Depends(get_seo_service),
) -> IssueOverviewResponse:
    overview = await service.get_issue_overview(website_id, user_id)
    return IssueOverviewResponse.model_validate(overview, from_attributes=True)


@router.patch(
    "/issues/{issue_id}/status",
    response_model=TrackedIssueResponse,
    summary="Update a tracked issue's status",
)
async def update_issue_status(
    issue_id: UUID,
    update: IssueStatusUpdate,
    service: SEOAnalysisService = Depends(get_seo_service),
) -> TrackedIssueResponse:
    issue = await service.update_issue_status(
        issue_id,
        update.status,
        fix_method=update.fix_method,
        fix_session_id=update.fix_session_id,
        notes=update.notes,
    )
    if issue is None:
        raise NotFoundError("Tracked issue")
    return TrackedIssueResponse.model_validate(issue)
