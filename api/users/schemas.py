"""
Users API schemas (request/response models).

Request fields are optional at the schema level so that a missing field is
reported by the service as a 400 with a readable message instead of a
framework validation error.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

NAME_MAX_LENGTH = 100
EMAIL_MAX_LENGTH = 100


class UserWriteRequest(BaseModel):
    name: str | None = None
    email: str | None = None


class UserPatchRequest(BaseModel):
    name: str | None = None
    email: str | None = None


class UserResponse(BaseModel):
    id: int
    name: str
    email: str
    created_at: datetime


class MessageResponse(BaseModel):
    message: str


class UserCreatedResponse(MessageResponse):
    id: int
