from __future__ import annotations

from celery import Celery
from kombu import Queue

from src.config import settings

QUEUE_MEDIA_PROCESSING = "media-processing"
QUEUE_GITHUB_BUILD = "github-build"
QUEUE_AI_TASK = "ai-task"

TASK_PROCESS_MEDIA = "wa_assistant.process_media"
TASK_BUILD_GITHUB_PROJECT = "wa_assistant.build_github_project"
TASK_RUN_AI_TASK = "wa_assistant.run_ai_task"

# task name -> queue; also used by the stats counters to attribute outcomes.
TASK_QUEUES: dict[str, str] = {
    TASK_PROCESS_MEDIA: QUEUE_MEDIA_PROCESSING,
    TASK_BUILD_GITHUB_PROJECT: QUEUE_GITHUB_BUILD,
    TASK_RUN_AI_TASK: QUEUE_AI_TASK,
}

QUEUE_NAMES: tuple[str, ...] = (QUEUE_MEDIA_PROCESSING, QUEUE_GITHUB_BUILD, QUEUE_AI_TASK)


def make_celery() -> Celery:
    """Create the Celery app.

    Kept in a function so tests can import tasks without touching global state
    beyond settings. Workers run with:

        celery -A src.worker.celery_app worker -Q media-processing,github-build,ai-task
    """

    celery = Celery(
        "wa_assistant",
        broker=settings.redis_url,
        backend=settings.redis_url,
        include=["src.worker.tasks"],
    )

    celery.conf.update(
        task_serializer="json",
        result_serializer="json",
        accept_content=["json"],
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        result_extended=True,
        task_acks_late=True,
        worker_prefetch_multiplier=1,
        task_queues=[Queue(name) for name in QUEUE_NAMES],
        task_default_queue=QUEUE_AI_TASK,
        task_routes={name: {"queue": queue} for name, queue in TASK_QUEUES.items()},
    )

    return celery


celery_app = make_celery()

# Signal handlers register on import.
from src.worker import events  # noqa: E402,F401
