from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any
from uuid import UUID

from celery.result import AsyncResult

from src.config import settings
from src.services.ai_task_service import AI_TASK_TYPES, UnknownAITaskError
from src.worker import stats
from src.worker.celery_app import (
    QUEUE_AI_TASK,
    QUEUE_GITHUB_BUILD,
    QUEUE_MEDIA_PROCESSING,
    QUEUE_NAMES,
    celery_app,
)
from src.worker.tasks import build_github_project, process_media, run_ai_task

logger = logging.getLogger(__name__)

# Celery state -> queue-level state.
JOB_STATES: dict[str, str] = {
    "PENDING": "waiting",
    "RECEIVED": "waiting",
    "STARTED": "active",
    "PROGRESS": "active",
    "RETRY": "delayed",
    "SUCCESS": "completed",
    "FAILURE": "failed",
    "REVOKED": "failed",
}


@dataclass(frozen=True)
class QueueDefaults:
    """Default publish options per queue; callers may override per job.

    Attempt counts and backoff live on the task definitions (see
    src.worker.tasks) because Celery applies them worker-side.
    """

    media_processing: dict[str, Any] = field(default_factory=dict)
    github_build: dict[str, Any] = field(
        default_factory=lambda: {
            "soft_time_limit": settings.github_job_soft_time_limit,
            "time_limit": settings.github_job_hard_time_limit,
        }
    )
    ai_task: dict[str, Any] = field(default_factory=dict)


class QueueService:
    """Encapsulates the three background job queues."""

    def __init__(self, *, defaults: QueueDefaults | None = None) -> None:
        self._defaults = defaults or QueueDefaults()

    def add_media_processing_job(self, media_id: UUID, **options: Any) -> str:
        result = process_media.apply_async(
            args=[str(media_id)],
            **{**self._defaults.media_processing, **options},
        )
        logger.info("job_added queue=%s job_id=%s media_id=%s", QUEUE_MEDIA_PROCESSING, result.id, media_id)
        return result.id

    def add_github_build_job(
        self,
        user_id: UUID,
        session_id: UUID,
        project_spec: dict[str, Any],
        **options: Any,
    ) -> str:
        result = build_github_project.apply_async(
            args=[str(user_id), str(session_id), project_spec],
            **{**self._defaults.github_build, **options},
        )
        logger.info("job_added queue=%s job_id=%s session_id=%s", QUEUE_GITHUB_BUILD, result.id, session_id)
        return result.id

    def add_ai_task_job(self, task_type: str, data: dict[str, Any], **options: Any) -> str:
        if task_type not in AI_TASK_TYPES:
            raise UnknownAITaskError(task_type)

        result = run_ai_task.apply_async(
            args=[task_type, data],
            **{**self._defaults.ai_task, **options},
        )
        logger.info("job_added queue=%s job_id=%s type=%s", QUEUE_AI_TASK, result.id, task_type)
        return result.id

    def get_job_status(self, queue: str, job_id: str) -> dict[str, Any] | None:
        """Status of a job, or None when the queue is unknown or the job was
        sent to a different queue.

        Celery reports unknown ids as PENDING, so a missing job reads as waiting.
        The queue is only known once a worker has stored an extended result.
        """

        if queue not in QUEUE_NAMES:
            return None

        res = AsyncResult(job_id, app=celery_app)
        job_queue = getattr(res, "queue", None)
        if job_queue and job_queue != queue:
            return None

        raw_state = res.state
        info = res.info

        return {
            "id": job_id,
            "state": JOB_STATES.get(raw_state, raw_state.lower()),
            "progress": info if raw_state == "PROGRESS" else None,
            "result": res.result if raw_state == "SUCCESS" else None,
            "failed_reason": str(info) if raw_state in ("FAILURE", "REVOKED") and info is not None else None,
        }

    def get_queue_stats(self, queue: str) -> dict[str, int]:
        """Waiting/active/delayed come from the broker and live workers;
        completed/failed from the counters kept by the worker signals."""

        waiting = self._broker_queue_length(queue)

        inspect = celery_app.control.inspect(timeout=1.0)
        active = _count_for_queue(inspect.active(), queue)
        delayed = _count_for_queue(inspect.scheduled(), queue, nested_key="request")

        outcomes = stats.read_outcomes(queue)
        return {
            "waiting": waiting,
            "active": active,
            "completed": outcomes["completed"],
            "failed": outcomes["failed"],
            "delayed": delayed,
        }

    def get_queues(self) -> tuple[str, ...]:
        return QUEUE_NAMES

    def _broker_queue_length(self, queue: str) -> int:
        with celery_app.connection_for_read() as conn:
            try:
                declared = conn.default_channel.queue_declare(queue=queue, passive=True)
            except conn.channel_errors:
                # Not declared yet: nobody has published or consumed it.
                return 0
        return int(declared.message_count)


def _count_for_queue(per_worker: dict | None, queue: str, *, nested_key: str | None = None) -> int:
    total = 0
    for tasks in (per_worker or {}).values():
        for item in tasks:
            task = item.get(nested_key, {}) if nested_key else item
            if (task.get("delivery_info") or {}).get("routing_key") == queue:
                total += 1
    return total


queue_service = QueueService()
