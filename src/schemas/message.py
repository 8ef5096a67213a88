from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class MediaRead(BaseModel):
    id: UUID
    message_id: UUID
    type: str

    filename: str
    mime_type: str | None = None
    size: int | None = None

    extracted_text: str | None = None
    classification: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    is_processed: bool

    created_at: datetime

    class Config:
        from_attributes = True


class MessageRead(BaseModel):
    id: UUID
    session_id: UUID

    whatsapp_message_id: str | None = None
    direction: str
    type: str
    content: str | None = None
    status: str
    is_processed: bool

    created_at: datetime

    class Config:
        from_attributes = True


class MessageWithMediaRead(MessageRead):
    media: list[MediaRead] = Field(default_factory=list)
