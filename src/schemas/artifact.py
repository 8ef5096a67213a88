from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class ArtifactRead(BaseModel):
    id: UUID
    session_id: UUID

    type: str
    title: str
    description: str | None = None
    content: str | None = None
    url: str | None = None
    meta: dict[str, Any] = Field(default_factory=dict)
    status: str

    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ProjectFile(BaseModel):
    path: str = Field(..., min_length=1)
    content: str


class RepositoryBuildRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=80)
    description: str | None = None
    is_private: bool = False
    files: list[ProjectFile] | None = None
