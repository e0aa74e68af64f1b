"""Celery app configuration."""

import asyncio

from celery import Celery

from app.core.config import settings

celery_app = Celery(
    "app.worker",
    broker=settings.CELERY_BROKER_URL or settings.REDIS_URL,
    backend=settings.CELERY_RESULT_BACKEND or settings.REDIS_URL,
    include=[
        "app.worker.tasks.document_tasks",
        "app.worker.tasks.conversation_tasks",
    ],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    worker_hijack_root_logger=False,
    # At-least-once delivery; tasks are idempotent on the document status
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    beat_schedule={
        "sweep-stale-documents": {
            "task": "app.worker.tasks.document_tasks.sweep_stale_documents",
            "schedule": float(settings.STALE_DOCUMENT_SWEEP_INTERVAL_SECONDS),
        },
    },
)


def run_async(coro):
    """Run a coroutine on this worker's event loop."""
    try:
        loop = asyncio.get_event_loop()
    except RuntimeError:
        loop = None
    if loop is None or loop.is_closed():
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)
