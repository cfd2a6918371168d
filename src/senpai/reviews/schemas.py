"""Pydantic schemas for review endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, Field


class SubmitReviewRequest(BaseModel):
    reviewee_id: uuid.UUID
    reviewer_role: str = Field(..., pattern="^(senpai|kouhai)$")
    badges: list[str] = Field(default_factory=list)
    comment: str | None = None


class ReviewResponse(BaseModel):
    id: str
    match_id: str
    reviewer_id: str
    reviewee_id: str
    reviewer_role: str
    badges: list[str]
    comment: str | None = None
    created_at: datetime


class ReviewListResponse(BaseModel):
    reviews: list[ReviewResponse]
    total: int


class ReviewEligibilityResponse(BaseModel):
    can_submit: bool
    my_role: str | None = None
    allowed_badges: list[str] = []


class BadgeResponse(BaseModel):
    key: str
    emoji: str
    label: str


class UserStatsResponse(BaseModel):
    teach_count: int
    challenge_count: int
    review_count: int
    badges: dict[str, int]
