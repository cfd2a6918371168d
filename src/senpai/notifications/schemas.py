"""Pydantic schemas for notification endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str | None = None
    link: str | None = None
    read: bool
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    total: int
    page: int
    per_page: int


class UnreadCountResponse(BaseModel):
    count: int


class MarkReadResponse(BaseModel):
    updated: int


class NotificationPreferences(BaseModel):
    likes: bool = True
    applications: bool = True
    messages: bool = True
    follows: bool = True
    matches: bool = True
    questions: bool = True
    reviews: bool = True


class UpdatePreferencesRequest(BaseModel):
    likes: bool | None = None
    applications: bool | None = None
    messages: bool | None = None
    follows: bool | None = None
    matches: bool | None = None
    questions: bool | None = None
    reviews: bool | None = None
