from __future__ import annotations

import logging
from uuid import UUID

logger = logging.getLogger(__name__)


def enqueue_media_processing(*, media_id: UUID) -> str | None:
    """Enqueue OCR/classification for a stored image.

    This function must be non-fatal: the webhook keeps replying to the user
    even when Redis is down. Returns the job id, or None if enqueueing failed.
    """

    try:
        # Imported lazily so the webhook path does not import the Celery task
        # graph until there is media to process.
        from src.services.queue_service import queue_service

        return queue_service.add_media_processing_job(media_id)
    except Exception:
        logger.exception("Failed to enqueue media processing (media_id=%s)", media_id)
        return None
