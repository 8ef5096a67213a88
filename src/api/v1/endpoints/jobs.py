from __future__ import annotations

import logging
import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.deps.auth import get_current_user
from src.api.v1.endpoints.sessions import get_owned_session
from src.crud.media import get_media
from src.database import get_db
from src.models.user import User
from src.schemas.artifact import RepositoryBuildRequest
from src.schemas.job import AITaskRequest, JobEnqueued, JobStatus, QueueStats, QueueStatsResponse
from src.services.queue_service import queue_service
from src.worker.celery_app import QUEUE_AI_TASK, QUEUE_GITHUB_BUILD

logger = logging.getLogger(__name__)

router = APIRouter(tags=["jobs"])


def _broker_unavailable(queue: str) -> HTTPException:
    logger.exception("enqueue_failed queue=%s", queue)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job queue unavailable")


async def _enqueue(queue: str, add_job, *args: Any) -> str:
    # Publishing blocks on the broker (and keeps retrying while it is down),
    # so it must stay off the event loop.
    try:
        return await run_in_threadpool(add_job, *args)
    except Exception:
        raise _broker_unavailable(queue)


async def _owned_task_data(data: dict[str, Any], user: User, session: AsyncSession) -> dict[str, Any]:
    """Reject references to sessions or media the caller does not own."""

    scoped = dict(data)

    if data.get("session_id") is not None:
        chat = await get_owned_session(str(data["session_id"]), user, session)
        scoped["session_id"] = str(chat.id)

    if data.get("media_id") is not None:
        try:
            media_id = uuid.UUID(str(data["media_id"]))
        except ValueError:
            raise HTTPException(status_code=404, detail="Media not found")

        media = await get_media(session, media_id=media_id)
        if media is None or media.user_id != user.id:
            raise HTTPException(status_code=404, detail="Media not found")
        scoped["media_id"] = str(media.id)

    return scoped


@router.post("/sessions/{session_id}/build", response_model=JobEnqueued, status_code=status.HTTP_202_ACCEPTED)
async def build_repository_endpoint(
    session_id: str,
    payload: RepositoryBuildRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> JobEnqueued:
    chat = await get_owned_session(session_id, user, session)

    job_id = await _enqueue(
        QUEUE_GITHUB_BUILD,
        queue_service.add_github_build_job,
        user.id,
        chat.id,
        payload.model_dump(exclude_none=True),
    )
    return JobEnqueued(job_id=job_id, queue=QUEUE_GITHUB_BUILD)


@router.post("/sessions/{session_id}/summarize", response_model=JobEnqueued, status_code=status.HTTP_202_ACCEPTED)
async def summarize_session_endpoint(
    session_id: str,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> JobEnqueued:
    chat = await get_owned_session(session_id, user, session)

    job_id = await _enqueue(QUEUE_AI_TASK, queue_service.add_ai_task_job, "summarize", {"session_id": str(chat.id)})
    return JobEnqueued(job_id=job_id, queue=QUEUE_AI_TASK)


@router.post("/jobs/ai-tasks", response_model=JobEnqueued, status_code=status.HTTP_202_ACCEPTED)
async def enqueue_ai_task_endpoint(
    payload: AITaskRequest,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_db),
) -> JobEnqueued:
    data = await _owned_task_data(payload.data, user, session)

    job_id = await _enqueue(QUEUE_AI_TASK, queue_service.add_ai_task_job, payload.type, data)

    logger.info("ai_task_requested user_id=%s type=%s job_id=%s", user.id, payload.type, job_id)
    return JobEnqueued(job_id=job_id, queue=QUEUE_AI_TASK)


# Sync handlers: the broker/result-backend calls block, so FastAPI runs them
# in its threadpool.
@router.get("/jobs/stats", response_model=QueueStatsResponse)
def queue_stats_endpoint(user: User = Depends(get_current_user)) -> QueueStatsResponse:
    try:
        queues = {name: QueueStats(**queue_service.get_queue_stats(name)) for name in queue_service.get_queues()}
    except Exception:
        logger.exception("queue_stats_failed")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Job queue unavailable")
    return QueueStatsResponse(queues=queues)


@router.get("/jobs/{queue}/{job_id}", response_model=JobStatus)
def job_status_endpoint(queue: str, job_id: str, user: User = Depends(get_current_user)) -> JobStatus:
    if queue not in queue_service.get_queues():
        raise HTTPException(status_code=404, detail="Queue not found")

    job = queue_service.get_job_status(queue, job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return JobStatus(**job)
