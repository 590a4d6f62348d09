"""
Celery Worker Configuration

Runs queued page analyses outside the API process. One analysis holds a
page fetch, site probes, two speed measurements and a content-analysis
call, so tasks are acknowledged late and prefetched one at a time.
"""

from celery import Celery

from seolens.config import settings


celery_app = Celery(
    "seolens",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["seolens.tasks.analysis_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # A worker lost mid-analysis leaves the task on the queue
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=settings.ANALYSIS_TASK_TIME_LIMIT,
    task_soft_time_limit=settings.ANALYSIS_TASK_TIME_LIMIT - 60,
    task_track_started=True,

    worker_prefetch_multiplier=1,
    worker_concurrency=settings.WORKER_CONCURRENCY,

    # Clients poll /analyze/tasks/{id}; results carry the full analysis
    result_expires=settings.ANALYSIS_RESULT_TTL,
    result_extended=True,

    task_routes={
        "seolens.tasks.analysis_tasks.*": {"queue": settings.ANALYSIS_QUEUE},
    },
    task_default_queue="default",
)
