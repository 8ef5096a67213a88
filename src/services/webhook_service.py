from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.crud.message import get_message_by_whatsapp_id, get_recent_processed_messages
from src.database import SessionLocal
from src.models.message import MESSAGE_STATUSES
from src.schemas.webhook import WebhookPayload
from src.services import message_service
from src.services.ai_service import CONVERSATION_SYSTEM_PROMPT, AIService, ai_service
from src.services.media_service import MediaService, media_service
from src.services.whatsapp_service import WhatsAppService, whatsapp_service
from src.worker import dispatch

logger = logging.getLogger(__name__)

WHATSAPP_OBJECT = "whatsapp_business_account"
EMPTY_MESSAGE_PLACEHOLDER = "I sent you a media file."
ERROR_REPLY = "Sorry, I encountered an error processing your message. Please try again."
CONTEXT_MESSAGES = 10

MEDIA_MESSAGE_TYPES = ("image", "document", "audio", "video")


@dataclass(frozen=True)
class IncomingContent:
    type: str
    content: str
    media_id: str | None = None


@dataclass(frozen=True)
class ReplyContext:
    user_id: UUID
    session_id: UUID
    phone_number: str


def extract_message_content(message: dict[str, Any]) -> IncomingContent:
    """Normalize a WhatsApp message object into (type, text, media id).

    Unsupported types (stickers, reactions, ...) become empty text messages.
    """

    kind = message.get("type")
    body = message.get(kind) if isinstance(kind, str) else None
    body = body if isinstance(body, dict) else {}

    if kind == "text":
        return IncomingContent(type="text", content=str(body.get("body") or ""))
    if kind in ("image", "video"):
        return IncomingContent(type=kind, content=str(body.get("caption") or ""), media_id=body.get("id"))
    if kind == "document":
        return IncomingContent(type="document", content=str(body.get("filename") or ""), media_id=body.get("id"))
    if kind == "audio":
        return IncomingContent(type="audio", content="", media_id=body.get("id"))
    if kind == "location":
        label = body.get("name") or body.get("address")
        coords = f"{body.get('latitude')},{body.get('longitude')}"
        return IncomingContent(type="location", content=f"{label} ({coords})" if label else coords)
    if kind == "contacts":
        contacts = message.get("contacts") or []
        names = [((c.get("name") or {}).get("formatted_name") or "") for c in contacts if isinstance(c, dict)]
        return IncomingContent(type="contacts", content=", ".join(n for n in names if n))

    return IncomingContent(type="text", content="")


class WebhookService:
    def __init__(
        self,
        *,
        whatsapp: WhatsAppService | None = None,
        ai: AIService | None = None,
        media: MediaService | None = None,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.whatsapp = whatsapp or whatsapp_service
        self.ai = ai or ai_service
        self.media = media or media_service
        self.session_factory = session_factory or SessionLocal

    async def handle_payload(self, body: Any) -> None:
        """Entry point for a webhook delivery. Never raises."""

        try:
            payload = WebhookPayload.model_validate(body)
        except ValidationError:
            logger.warning("webhook_payload_invalid")
            return

        if payload.object != WHATSAPP_OBJECT:
            logger.info("webhook_ignored object=%s", payload.object)
            return

        for entry in payload.entry:
            for change in entry.changes:
                if change.field == "messages":
                    await self.process_change(change.value)

    async def process_change(self, value: dict[str, Any]) -> None:
        try:
            async with self.session_factory() as session:
                await self.process_statuses(session, value)
                await self.process_messages(session, value)
        except Exception:
            logger.exception("webhook_processing_failed")

    async def process_statuses(self, session: AsyncSession, value: dict[str, Any]) -> None:
        for status in value.get("statuses") or []:
            wa_id = status.get("id")
            new_status = status.get("status")
            if not wa_id or new_status not in MESSAGE_STATUSES:
                continue

            message = await get_message_by_whatsapp_id(session, whatsapp_message_id=wa_id)
            if message is None:
                continue
            await message_service.update_message_status(session, message.id, new_status)

    async def process_messages(self, session: AsyncSession, value: dict[str, Any]) -> None:
        messages = value.get("messages") or []
        if not messages:
            return

        message = messages[0]
        from_number = message.get("from")
        wa_message_id = message.get("id")
        if not from_number:
            logger.warning("webhook_message_without_sender message_id=%s", wa_message_id)
            return

        # WhatsApp redelivers until it sees a 200; skip what we already stored.
        if wa_message_id and await get_message_by_whatsapp_id(session, whatsapp_message_id=wa_message_id):
            logger.info("webhook_duplicate_message message_id=%s", wa_message_id)
            return

        user = await message_service.get_or_create_user(session, from_number)
        chat = await message_service.get_or_create_session(session, user.id)

        # Plain values from here on: a rollback expires ORM instances, and
        # reloading them lazily is not possible on an AsyncSession.
        ctx = ReplyContext(user_id=user.id, session_id=chat.id, phone_number=user.phone_number)

        incoming = extract_message_content(message)
        saved = await message_service.save_message(
            session,
            session_id=ctx.session_id,
            user_id=ctx.user_id,
            whatsapp_message_id=wa_message_id,
            direction="inbound",
            type=incoming.type,
            content=incoming.content,
            status="delivered",
        )
        incoming_id = saved.id

        if incoming.media_id and incoming.type in MEDIA_MESSAGE_TYPES:
            await self._store_media(session, ctx, incoming_id, incoming)

        if wa_message_id:
            try:
                await self.whatsapp.mark_as_read(wa_message_id)
            except Exception:
                logger.warning("mark_as_read_failed message_id=%s", wa_message_id, exc_info=True)

        await self.generate_and_send_response(session, ctx, incoming_id, incoming.content)

    async def _store_media(
        self,
        session: AsyncSession,
        ctx: ReplyContext,
        message_id: UUID,
        incoming: IncomingContent,
    ) -> None:
        try:
            media = await self.media.download_and_save(
                session,
                whatsapp_media_id=incoming.media_id,
                message_id=message_id,
                user_id=ctx.user_id,
                session_id=ctx.session_id,
                media_type=incoming.type,
            )
        except Exception:
            logger.exception("media_download_failed message_id=%s", message_id)
            await session.rollback()
            return

        if incoming.type == "image":
            # Publishing blocks on the broker.
            await asyncio.to_thread(dispatch.enqueue_media_processing, media_id=media.id)

    async def generate_and_send_response(
        self,
        session: AsyncSession,
        ctx: ReplyContext,
        incoming_id: UUID,
        user_message: str,
    ) -> None:
        outbound_id: UUID | None = None
        try:
            history = await get_recent_processed_messages(session, session_id=ctx.session_id, limit=CONTEXT_MESSAGES)
            context = self.ai.build_conversation_context(history, CONTEXT_MESSAGES)
            context.append({"role": "user", "content": user_message or EMPTY_MESSAGE_PLACEHOLDER})

            reply = await self.ai.generate_response(context, CONVERSATION_SYSTEM_PROMPT)

            outbound = await message_service.save_message(
                session,
                session_id=ctx.session_id,
                user_id=ctx.user_id,
                direction="outbound",
                type="text",
                content=reply.content,
                status="pending",
            )
            outbound_id = outbound.id

            sent = await self.whatsapp.send_message(ctx.phone_number, reply.content)
            sent_ids = [m.get("id") for m in (sent.get("messages") or [])]

            await message_service.update_message_status(
                session,
                outbound_id,
                "sent",
                whatsapp_message_id=sent_ids[0] if sent_ids else None,
                is_processed=True,
            )
            await message_service.mark_processed(session, incoming_id)

            logger.info("reply_sent user_id=%s session_id=%s", ctx.user_id, ctx.session_id)
        except Exception:
            logger.exception("reply_failed user_id=%s session_id=%s", ctx.user_id, ctx.session_id)
            await session.rollback()
            if outbound_id is not None:
                await message_service.update_message_status(session, outbound_id, "failed")
            await self._send_error_reply(ctx.phone_number)

    async def _send_error_reply(self, phone_number: str) -> None:
        try:
            await self.whatsapp.send_message(phone_number, ERROR_REPLY)
        except Exception:
            logger.exception("error_reply_failed")


webhook_service = WebhookService()
