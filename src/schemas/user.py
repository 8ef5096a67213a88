from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field


class RegisterRequest(BaseModel):
    phone_number: str = Field(..., pattern=r"^\+?[1-9]\d{1,14}$")
    name: str | None = None
    email: str | None = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    password: str | None = Field(None, min_length=8)


class LoginRequest(BaseModel):
    phone_number: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ProfileUpdate(BaseModel):
    name: str | None = None
    email: str | None = Field(None, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
    preferences: dict[str, Any] | None = None


class UserRead(BaseModel):
    id: UUID
    phone_number: str
    name: str | None = None
    email: str | None = None

    class Config:
        from_attributes = True


class ProfileRead(UserRead):
    profile_picture: str | None = None
    preferences: dict[str, Any] = Field(default_factory=dict)
    last_seen_at: datetime | None = None
    created_at: datetime


class AuthResponse(BaseModel):
    user: UserRead
    token: str
