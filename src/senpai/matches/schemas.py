"""Pydantic schemas for match endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, Field


class StatusBadgeResponse(BaseModel):
    status: str
    label_ja: str
    label_en: str
    detail_ja: str | None = None
    detail_en: str | None = None
    reported_by_viewer: bool = False
    action_required: bool = False


class MatchResponse(BaseModel):
    id: str
    application_id: str
    status: str
    matched_at: datetime
    completed_by: str | None = None
    completed_at: datetime | None = None
    confirmed_by: str | None = None
    confirmed_at: datetime | None = None
    cancelled_at: datetime | None = None
    cancel_reason: str | None = None

    post_id: str
    post_title: str
    post_type: str
    post_owner_id: str
    applicant_id: str

    my_role: str
    partner_id: str
    display_status: StatusBadgeResponse


class MatchDetailResponse(MatchResponse):
    has_messages: bool
    has_reviewed: bool
    can_review: bool


class MatchListResponse(BaseModel):
    matches: list[MatchResponse]
    total: int


class CancelMatchRequest(BaseModel):
    reason: str | None = Field(None, max_length=500)


class RoleResponse(BaseModel):
    role: str
    partner_id: str
    post_type: str
