from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class WebhookChange(BaseModel):
    field: str | None = None
    value: dict[str, Any] = Field(default_factory=dict)


class WebhookEntry(BaseModel):
    id: str | None = None
    changes: list[WebhookChange] = Field(default_factory=list)


class WebhookPayload(BaseModel):
    """Envelope of a WhatsApp Cloud API webhook delivery.

    Only the envelope is modelled; change values stay plain dicts because the
    message shapes vary per type and are read defensively downstream.
    """

    object: str | None = None
    entry: list[WebhookEntry] = Field(default_factory=list)
