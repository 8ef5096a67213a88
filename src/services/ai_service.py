from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from openai import AsyncOpenAI

from src.config import settings

logger = logging.getLogger(__name__)

IMAGE_CATEGORIES: tuple[str, ...] = (
    "error_screenshot",
    "code_snippet",
    "ui_design",
    "diagram",
    "note",
    "document",
    "other",
)

CONVERSATION_SYSTEM_PROMPT = """You are a helpful AI assistant integrated with WhatsApp.
You help users with various tasks including:
- Answering questions
- Analyzing screenshots and images
- Helping with coding tasks
- Providing summaries and insights
- Assisting with productivity

Be concise and friendly. Keep responses short and to the point for WhatsApp."""

TEXT_EXTRACTION_PROMPT = "Extract all text from this image. If there is no text, describe what you see."

IMAGE_CLASSIFICATION_PROMPT = (
    f"Classify this image into one of these categories: {', '.join(IMAGE_CATEGORIES)}. "
    "Return only the category name."
)

SUMMARY_SYSTEM_PROMPT = "You are a helpful assistant that creates concise summaries."
INTENT_SYSTEM_PROMPT = "You are an intent classification system. Always respond with valid JSON."

DEFAULT_INTENT = {"intent": "general_query", "entities": [], "confidence": 0.5}


@dataclass(frozen=True)
class AIResponse:
    content: str
    usage: dict[str, Any]


def _role_for(direction: str | None) -> str:
    return "user" if direction == "inbound" else "assistant"


class AIService:
    """Chat + vision calls against the OpenAI API."""

    def __init__(self, client: AsyncOpenAI | None = None) -> None:
        self._client = client

    @property
    def client(self) -> AsyncOpenAI:
        # Built lazily: AsyncOpenAI refuses to construct without an API key,
        # and the API process imports this module even when AI is unused.
        if self._client is None:
            self._client = AsyncOpenAI(api_key=settings.openai_api_key, timeout=settings.http_timeout_seconds)
        return self._client

    async def aclose(self) -> None:
        """Close and drop the client; the next call builds a fresh one.

        The client's connection pool is bound to the event loop it was first
        used on, so code that runs each job under its own ``asyncio.run``
        must call this before the loop goes away.
        """

        client, self._client = self._client, None
        if client is not None:
            await client.close()

    async def generate_response(
        self,
        messages: Sequence[dict[str, Any]],
        system_prompt: str | None = None,
    ) -> AIResponse:
        payload = list(messages)
        if system_prompt:
            payload = [{"role": "system", "content": system_prompt}, *payload]

        response = await self.client.chat.completions.create(
            model=settings.openai_model,
            messages=payload,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
        )

        usage = response.usage.model_dump() if response.usage is not None else {}
        logger.info("ai_response_generated total_tokens=%s", usage.get("total_tokens"))
        return AIResponse(content=response.choices[0].message.content or "", usage=usage)

    async def analyze_image(self, image_url: str, prompt: str) -> str:
        response = await self.client.chat.completions.create(
            model=settings.openai_vision_model,
            messages=[
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_url}},
                    ],
                }
            ],
            max_tokens=1000,
        )
        logger.info("ai_image_analyzed")
        return response.choices[0].message.content or ""

    async def summarize_conversation(self, messages: Iterable[Any]) -> str:
        lines = []
        for m in messages:
            direction = _get(m, "direction")
            speaker = "User" if direction == "inbound" else "Assistant"
            lines.append(f"{speaker}: {_get(m, 'content') or ''}")

        response = await self.generate_response(
            [
                {
                    "role": "user",
                    "content": "Please summarize the following conversation:\n\n" + "\n".join(lines),
                }
            ],
            SUMMARY_SYSTEM_PROMPT,
        )
        return response.content

    async def extract_intent(self, message: str) -> dict[str, Any]:
        """Classify a message; never raises, falls back to a generic intent."""

        try:
            response = await self.generate_response(
                [
                    {
                        "role": "user",
                        "content": (
                            "Analyze this message and determine the user's intent. Return as JSON with "
                            "fields: intent (string), entities (array), confidence (number 0-1).\n\n"
                            f"Message: {message}"
                        ),
                    }
                ],
                INTENT_SYSTEM_PROMPT,
            )
            result = json.loads(response.content)
            if not isinstance(result, dict):
                raise ValueError("intent payload is not an object")
        except Exception:
            logger.exception("ai_intent_extraction_failed")
            return dict(DEFAULT_INTENT)

        logger.info("ai_intent_extracted intent=%s", result.get("intent"))
        return result

    @staticmethod
    def build_conversation_context(messages: Sequence[Any], max_messages: int = 10) -> list[dict[str, str]]:
        recent = list(messages)[-max_messages:] if max_messages > 0 else []
        return [
            {"role": _role_for(_get(m, "direction")), "content": _get(m, "content") or ""}
            for m in recent
        ]


def _get(obj: Any, key: str) -> Any:
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


ai_service = AIService()
