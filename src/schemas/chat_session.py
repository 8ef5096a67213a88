from __future__ import annotations

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field

from src.schemas.artifact import ArtifactRead
from src.schemas.message import MessageRead, MessageWithMediaRead

SessionType = Literal["daily", "task", "project", "custom"]
SessionStatus = Literal["active", "completed", "archived"]


class SessionCreate(BaseModel):
    title: str | None = None
    description: str | None = None
    type: SessionType = "task"


class SessionUpdate(BaseModel):
    title: str | None = None
    description: str | None = None
    status: SessionStatus | None = None


class SessionRead(BaseModel):
    id: UUID
    user_id: UUID

    title: str | None = None
    description: str | None = None
    type: str
    status: str
    meta: dict[str, Any] = Field(default_factory=dict)

    started_at: datetime
    completed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SessionListItem(SessionRead):
    messages: list[MessageRead] = Field(default_factory=list)


class SessionListResponse(BaseModel):
    total: int
    sessions: list[SessionListItem]


class SessionDetail(SessionRead):
    messages: list[MessageWithMediaRead] = Field(default_factory=list)
    artifacts: list[ArtifactRead] = Field(default_factory=list)


class SessionStatsCounts(BaseModel):
    messages: int
    media: int
    artifacts: int
    duration: int = Field(..., description="Milliseconds since start (or until completion)")


class SessionStats(BaseModel):
    session_id: UUID
    stats: SessionStatsCounts
