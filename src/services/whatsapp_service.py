from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from src.config import settings

logger = logging.getLogger(__name__)

CAPTION_MEDIA_TYPES = frozenset({"image", "video", "document"})


@dataclass(frozen=True)
class DownloadedMedia:
    data: bytes
    mime_type: str | None
    size: int | None


class WhatsAppService:
    """Thin async client for the WhatsApp Cloud API (Graph API)."""

    def __init__(
        self,
        *,
        token: str | None = None,
        phone_number_id: str | None = None,
        api_url: str | None = None,
        api_version: str | None = None,
        verify_token: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token if token is not None else settings.whatsapp_token
        self.phone_number_id = phone_number_id if phone_number_id is not None else settings.whatsapp_phone_number_id
        self.base_url = f"{api_url or settings.whatsapp_api_url}/{api_version or settings.whatsapp_api_version}"
        self.verify_token = verify_token if verify_token is not None else settings.verify_token
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.token}"},
            timeout=settings.http_timeout_seconds,
            transport=self._transport,
        )

    async def _post_message(self, payload: dict) -> dict:
        async with self._client() as client:
            r = await client.post(f"/{self.phone_number_id}/messages", json=payload)
            r.raise_for_status()
            return r.json()

    async def send_message(self, to: str, message: str) -> dict:
        data = await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": "text",
                "text": {"body": message},
            }
        )
        logger.info("whatsapp_message_sent to=%s message_id=%s", to, _first_message_id(data))
        return data

    async def send_media_message(self, to: str, media_type: str, media_id: str, caption: str = "") -> dict:
        body: dict = {"id": media_id}
        if caption and media_type in CAPTION_MEDIA_TYPES:
            body["caption"] = caption

        data = await self._post_message(
            {
                "messaging_product": "whatsapp",
                "to": to,
                "type": media_type,
                media_type: body,
            }
        )
        logger.info(
            "whatsapp_media_sent to=%s type=%s message_id=%s", to, media_type, _first_message_id(data)
        )
        return data

    async def download_media(self, media_id: str) -> DownloadedMedia:
        """Resolve the short-lived media URL, then fetch the bytes."""

        async with self._client() as client:
            meta = await client.get(f"/{media_id}")
            meta.raise_for_status()
            download_url = meta.json()["url"]

            r = await client.get(download_url)
            r.raise_for_status()

        size_header = r.headers.get("content-length")
        return DownloadedMedia(
            data=r.content,
            mime_type=r.headers.get("content-type"),
            size=int(size_header) if size_header else len(r.content),
        )

    async def mark_as_read(self, message_id: str) -> None:
        await self._post_message(
            {
                "messaging_product": "whatsapp",
                "status": "read",
                "message_id": message_id,
            }
        )
        logger.info("whatsapp_message_read message_id=%s", message_id)

    def verify_webhook(self, mode: str | None, token: str | None, challenge: str | None) -> str | None:
        if mode == "subscribe" and self.verify_token and token == self.verify_token:
            logger.info("webhook_verified")
            return challenge
        logger.warning("webhook_verification_failed mode=%s", mode)
        return None


def _first_message_id(data: dict) -> str | None:
    messages = data.get("messages") or []
    return messages[0].get("id") if messages else None


whatsapp_service = WhatsAppService()
