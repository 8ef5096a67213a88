from __future__ import annotations

import base64
import logging
import mimetypes
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.crud.media import get_media, media_crud
from src.services.ai_service import (
    IMAGE_CATEGORIES,
    IMAGE_CLASSIFICATION_PROMPT,
    TEXT_EXTRACTION_PROMPT,
    AIService,
    ai_service,
)

logger = logging.getLogger(__name__)

OCR_OPTIONS = {
    "language": "eng",
    "isOverlayRequired": "false",
    "detectOrientation": "true",
}

AI_FALLBACK_CONFIDENCE = 0.8


@dataclass(frozen=True)
class OCRResult:
    text: str
    confidence: float


def image_data_url(path: str | Path) -> str:
    mime, _ = mimetypes.guess_type(str(path))
    encoded = base64.b64encode(Path(path).read_bytes()).decode("ascii")
    return f"data:{mime or 'image/jpeg'};base64,{encoded}"


class OCRService:
    """Text extraction (OCR.space, AI fallback) and image classification."""

    def __init__(
        self,
        *,
        ai: AIService | None = None,
        api_key: str | None = None,
        api_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.ai = ai or ai_service
        self.api_key = api_key if api_key is not None else settings.ocr_api_key
        self.api_url = api_url or settings.ocr_api_url
        self._transport = transport

    async def extract_text_from_image(self, image_path: str | Path) -> OCRResult:
        path = Path(image_path)
        try:
            async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=self._transport) as client:
                r = await client.post(
                    self.api_url,
                    data={"apikey": self.api_key or "", **OCR_OPTIONS},
                    files={"file": (path.name, path.read_bytes())},
                )
                r.raise_for_status()
                payload = r.json()
        except Exception:
            logger.exception("ocr_extraction_failed path=%s", path)
            return await self.fallback_to_ai(path)

        results = payload.get("ParsedResults") if isinstance(payload, dict) else None
        if not results:
            return OCRResult(text="", confidence=0)

        text = "\n".join(str(r.get("ParsedText") or "") for r in results)
        confidence = results[0].get("TextOrientation") or 0
        try:
            confidence = float(confidence)
        except (TypeError, ValueError):
            confidence = 0.0

        logger.info("ocr_extraction_succeeded text_length=%d", len(text))
        return OCRResult(text=text, confidence=confidence)

    async def fallback_to_ai(self, image_path: str | Path) -> OCRResult:
        try:
            text = await self.ai.analyze_image(image_data_url(image_path), TEXT_EXTRACTION_PROMPT)
        except Exception:
            logger.exception("ai_text_extraction_failed path=%s", image_path)
            return OCRResult(text="", confidence=0)

        logger.info("ai_text_extraction_succeeded")
        return OCRResult(text=text, confidence=AI_FALLBACK_CONFIDENCE)

    async def classify_image(self, image_path: str | Path) -> str:
        try:
            answer = await self.ai.analyze_image(image_data_url(image_path), IMAGE_CLASSIFICATION_PROMPT)
        except Exception:
            logger.exception("image_classification_failed path=%s", image_path)
            return "other"

        classification = answer.strip().strip(".").lower()
        if classification not in IMAGE_CATEGORIES:
            logger.warning("image_classification_unknown answer=%r", answer)
            return "other"

        logger.info("image_classified classification=%s", classification)
        return classification

    async def process_media(self, session: AsyncSession, media_id: UUID) -> str | None:
        """OCR + classify an image media row. Returns the classification, or
        None when there was nothing to do."""

        media = await get_media(session, media_id=media_id)
        if media is None or media.type != "image":
            return None

        ocr = await self.extract_text_from_image(media.stored_path)
        classification = await self.classify_image(media.stored_path)

        await media_crud.update(
            session,
            db_obj=media,
            obj_in={
                "extracted_text": ocr.text,
                "classification": classification,
                "meta": {
                    **(media.meta or {}),
                    "ocr_confidence": ocr.confidence,
                    "processed_at": datetime.now(timezone.utc).isoformat(),
                },
                "is_processed": True,
            },
        )
        await session.commit()

        logger.info("media_processed media_id=%s classification=%s", media_id, classification)
        return classification


ocr_service = OCRService()
