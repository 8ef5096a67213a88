from __future__ import annotations

import logging
from typing import Any
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.crud.artifact import artifact_crud
from src.crud.chat_session import session_crud
from src.crud.media import get_media
from src.crud.message import list_session_messages
from src.services.ai_service import TEXT_EXTRACTION_PROMPT, AIService, ai_service
from src.services.ocr_service import image_data_url

logger = logging.getLogger(__name__)

AI_TASK_TYPES = ("summarize", "extract_intent", "analyze_image")


class UnknownAITaskError(ValueError):
    def __init__(self, task_type: str) -> None:
        super().__init__(f"Unknown AI task type: {task_type}")
        self.task_type = task_type


class AITaskService:
    """Executes the generic ``ai-task`` jobs.

    Results must be JSON serializable: they end up in the Celery result backend.
    """

    def __init__(self, *, ai: AIService | None = None) -> None:
        self.ai = ai or ai_service

    async def run(self, session: AsyncSession, task_type: str, data: dict[str, Any]) -> Any:
        if task_type == "summarize":
            return await self.summarize(session, data)
        if task_type == "extract_intent":
            return await self.ai.extract_intent(str(data.get("message") or ""))
        if task_type == "analyze_image":
            return await self.analyze_image(session, data)
        raise UnknownAITaskError(task_type)

    async def summarize(self, session: AsyncSession, data: dict[str, Any]) -> Any:
        session_id = data.get("session_id")
        if session_id is None:
            return await self.ai.summarize_conversation(data.get("messages") or [])

        chat = await session_crud.get(session, id=UUID(str(session_id)))
        if chat is None:
            raise LookupError(f"Session not found: {session_id}")

        messages = await list_session_messages(session, session_id=chat.id)
        summary = await self.ai.summarize_conversation(messages)

        artifact = await artifact_crud.create(
            session,
            obj_in={
                "user_id": chat.user_id,
                "session_id": chat.id,
                "type": "summary",
                "title": f"Summary of {chat.title or 'session'}",
                "content": summary,
                "meta": {"message_count": len(messages)},
                "status": "completed",
            },
        )
        await session.commit()

        logger.info("session_summarized session_id=%s artifact_id=%s", chat.id, artifact.id)
        return {"summary": summary, "artifact_id": str(artifact.id)}

    async def analyze_image(self, session: AsyncSession, data: dict[str, Any]) -> str:
        prompt = data.get("prompt") or TEXT_EXTRACTION_PROMPT

        image_url = data.get("image_url")
        if not image_url and data.get("media_id"):
            media = await get_media(session, media_id=UUID(str(data["media_id"])))
            if media is None:
                raise LookupError(f"Media not found: {data['media_id']}")
            image_url = image_data_url(media.stored_path)

        if not image_url:
            raise ValueError("analyze_image requires image_url or media_id")

        return await self.ai.analyze_image(image_url, prompt)


ai_task_service = AITaskService()
