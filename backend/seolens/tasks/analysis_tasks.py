"""
Analysis Tasks

Background page analysis on the Celery worker.
"""

import asyncio
import logging
from typing import Any, Dict

from celery import shared_task

from seolens.core.exceptions import FetchError
from seolens.database import get_task_session_maker
from seolens.schemas.analysis import AnalyzeRequest
from seolens.services.seo_service import build_seo_service

logger = logging.getLogger(__name__)


def run_async(coro):
    """Helper to run async code in sync context."""
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@shared_task(bind=True, max_retries=3)
def run_seo_analysis(self, payload: Dict[str, Any]):
    """Analyze one page; payload is a serialized AnalyzeRequest."""
    return run_async(_run_seo_analysis(payload))


async def _run_seo_analysis(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Async implementation of a queued analysis."""
    request = AnalyzeRequest.model_validate(payload)
    service = build_seo_service(get_task_session_maker())

    try:
        result = await service.analyze_website(request.to_analysis_request())
    except FetchError as e:
        logger.warning(f"Queued analysis of {request.url} failed: {e.message}")
        return {"url": request.url, "error": e.message}
    finally:
        await service.close()

    return result.to_dict()
