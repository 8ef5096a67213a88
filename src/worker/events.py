"""Queue event logging (completed / failed / retry) and outcome counters."""

from __future__ import annotations

import logging

from celery.signals import setup_logging, task_failure, task_retry, task_success

from src.logging_config import configure_logging
from src.worker import stats
from src.worker.celery_app import TASK_QUEUES

logger = logging.getLogger("wa_assistant.worker")


def _queue_for(sender) -> str:
    return TASK_QUEUES.get(getattr(sender, "name", ""), "unknown")


def _count(queue: str, outcome: str) -> None:
    try:
        stats.record_outcome(queue, outcome)
    except Exception:
        logger.warning("queue_stats_unavailable queue=%s outcome=%s", queue, outcome, exc_info=True)


@setup_logging.connect
def _configure_worker_logging(**_kwargs) -> None:
    configure_logging()


@task_success.connect
def _on_success(sender=None, result=None, **_kwargs) -> None:
    queue = _queue_for(sender)
    logger.info("job_completed queue=%s job_id=%s", queue, sender.request.id if sender else None)
    _count(queue, "completed")


@task_failure.connect
def _on_failure(sender=None, task_id=None, exception=None, **_kwargs) -> None:
    queue = _queue_for(sender)
    logger.error("job_failed queue=%s job_id=%s error=%s", queue, task_id, exception)
    _count(queue, "failed")


@task_retry.connect
def _on_retry(sender=None, request=None, reason=None, **_kwargs) -> None:
    logger.warning(
        "job_retry queue=%s job_id=%s reason=%s",
        _queue_for(sender),
        getattr(request, "id", None),
        reason,
    )
