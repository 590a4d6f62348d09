"""
Analyze API Endpoints

Run a page analysis synchronously, or queue it on the Celery worker.
"""
import logging

from fastapi import APIRouter, Depends

from seolens.core.deps import get_seo_service
from seolens.core.exceptions import BadRequestError, FetchError
from seolens.schemas.analysis import (
    AnalyzeRequest,
    AnalyzeResponse,
    AnalyzeTaskResponse,
    TaskStatusResponse,
)
from seolens.services.seo_service import SEOAnalysisService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/analyze", tags=["Analyze"])


@router.post(
    "",
    response_model=AnalyzeResponse,
    summary="Analyze a page",
    description="""
    Fetch and audit a single page.

    Returns the composite score, detected issues, recommendations, speed
    score and the underlying technical and content signals. When both
    `user_id` and `website_id` are given the report is stored and the
    website's tracked issues are reconciled.
    """,
)
async def analyze_page(
    request: AnalyzeRequest,
    service: SEOAnalysisService = Depends(get_seo_service),
) -> AnalyzeResponse:
    try:
        result = await service.analyze_website(request.to_analysis_request())
    except FetchError as e:
        raise BadRequestError(e.message)

    return AnalyzeResponse(**result.to_dict())


@router.post(
    "/async",
    response_model=AnalyzeTaskResponse,
    summary="Queue a page analysis",
)
async def analyze_page_async(request: AnalyzeRequest) -> AnalyzeTaskResponse:
    """Queue the analysis on the worker and return the task id."""
    from seolens.tasks.analysis_tasks import run_seo_analysis
    from seolens.worker import celery_app  # noqa: F401

    task = run_seo_analysis.delay(request.model_dump(mode="json"))
    logger.info(f"Queued SEO analysis task {task.id} for {request.url}")
    return AnalyzeTaskResponse(task_id=task.id, status="queued")


@router.get(
    "/tasks/{task_id}",
    response_model=TaskStatusResponse,
    summary="Get queued analysis status",
)
async def get_analysis_task(task_id: str) -> TaskStatusResponse:
    """Get the status of a queued analysis."""
    from celery.result import AsyncResult

    from seolens.worker import celery_app

    result = AsyncResult(task_id, app=celery_app)

    if result.state == "PENDING":
        return TaskStatusResponse(task_id=task_id, status="pending")
    elif result.state == "STARTED":
        return TaskStatusResponse(task_id=task_id, status="processing")
    elif result.state == "SUCCESS":
        data = result.result or {}
        return TaskStatusResponse(
            task_id=task_id,
            status="failed" if data.get("error") else "completed",
            result=None if data.get("error") else data,
            error=data.get("error"),
        )
    elif result.state == "FAILURE":
        return TaskStatusResponse(
            task_id=task_id,
            status="failed",
            error=str(result.result) if result.result else "Unknown error",
        )
    else:
        return TaskStatusResponse(task_id=task_id, status=result.state.lower())
