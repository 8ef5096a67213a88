from __future__ import annotations

import asyncio
import logging
from typing import Any
from uuid import UUID

from src.config import settings
from src.database import create_session_factory
from src.services.ai_service import ai_service
from src.services.ai_task_service import UnknownAITaskError, ai_task_service
from src.services.github_service import github_service
from src.services.ocr_service import ocr_service
from src.worker.celery_app import (
    TASK_BUILD_GITHUB_PROJECT,
    TASK_PROCESS_MEDIA,
    TASK_RUN_AI_TASK,
    celery_app,
)

logger = logging.getLogger(__name__)

# Every task runs its own event loop via asyncio.run, so pooled asyncpg
# connections would outlive the loop they were opened on. The shared OpenAI
# client is closed at the end of each task for the same reason.
WorkerSessionLocal = create_session_factory(null_pool=True)


async def _process_media(media_id: UUID) -> str | None:
    try:
        async with WorkerSessionLocal() as session:
            return await ocr_service.process_media(session, media_id)
    finally:
        await ai_service.aclose()


async def _build_github_project(user_id: UUID, session_id: UUID, project_spec: dict[str, Any]) -> dict[str, Any]:
    async with WorkerSessionLocal() as session:
        artifact, repo = await github_service.build_project(
            session,
            user_id=user_id,
            session_id=session_id,
            project_spec=project_spec,
            timeout=settings.github_job_time_limit_seconds,
        )
        return {
            "artifact_id": str(artifact.id),
            "repository_url": repo.get("html_url"),
            "repository": repo.get("full_name"),
        }


async def _run_ai_task(task_type: str, data: dict[str, Any]) -> Any:
    try:
        async with WorkerSessionLocal() as session:
            return await ai_task_service.run(session, task_type, data)
    finally:
        await ai_service.aclose()


@celery_app.task(
    name=TASK_PROCESS_MEDIA,
    bind=True,
    autoretry_for=(Exception,),
    max_retries=settings.media_job_attempts - 1,
    retry_backoff=settings.media_job_backoff_seconds,
    retry_jitter=False,
)
def process_media(self, media_id: str) -> dict[str, Any]:
    """OCR + classify a stored image."""

    logger.info("media_job_started job_id=%s media_id=%s", self.request.id, media_id)
    classification = asyncio.run(_process_media(UUID(media_id)))
    return {"success": True, "media_id": media_id, "classification": classification}


@celery_app.task(
    name=TASK_BUILD_GITHUB_PROJECT,
    bind=True,
    autoretry_for=(Exception,),
    max_retries=settings.github_job_attempts - 1,
    default_retry_delay=0,
    soft_time_limit=settings.github_job_soft_time_limit,
    time_limit=settings.github_job_hard_time_limit,
)
def build_github_project(self, user_id: str, session_id: str, project_spec: dict[str, Any]) -> dict[str, Any]:
    """Create a repository, commit the project files, record an artifact."""

    logger.info("github_build_job_started job_id=%s session_id=%s", self.request.id, session_id)
    result = asyncio.run(_build_github_project(UUID(user_id), UUID(session_id), project_spec))
    return {"success": True, **result}


@celery_app.task(
    name=TASK_RUN_AI_TASK,
    bind=True,
    autoretry_for=(Exception,),
    dont_autoretry_for=(UnknownAITaskError,),
    max_retries=settings.ai_job_attempts - 1,
    retry_backoff=settings.ai_job_backoff_seconds,
    retry_jitter=False,
)
def run_ai_task(self, task_type: str, data: dict[str, Any]) -> dict[str, Any]:
    logger.info("ai_job_started job_id=%s type=%s", self.request.id, task_type)
    result = asyncio.run(_run_ai_task(task_type, data or {}))
    return {"success": True, "result": result}
