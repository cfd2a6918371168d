"""Notification inbox API endpoints — 6 routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.auth.dependencies import get_current_user
from senpai.database import get_session
from senpai.db.models import Notification, Profile
from senpai.errors import NotFoundError
from senpai.notifications.schemas import (
    MarkReadResponse,
    NotificationListResponse,
    NotificationPreferences,
    NotificationResponse,
    UnreadCountResponse,
    UpdatePreferencesRequest,
)
from senpai.notifications.service import (
    get_notifications,
    get_unread_count,
    get_user_notification_preferences,
    mark_all_as_read,
    mark_as_read,
    update_notification_preferences,
)

router = APIRouter(prefix="/api/v1/notifications", tags=["Notifications"])


def _notification_response(n: Notification) -> NotificationResponse:
    return NotificationResponse(
        id=str(n.id),
        type=n.type,
        title=n.title,
        message=n.message,
        link=n.link,
        read=n.read,
        metadata=n.notification_metadata or {},
        created_at=n.created_at,
    )


@router.get("", response_model=NotificationListResponse)
async def list_notifications_endpoint(
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Caller's notifications, most recent first."""
    items, total = await get_notifications(db, user.id, page=page, per_page=per_page)
    return NotificationListResponse(
        notifications=[_notification_response(n) for n in items],
        total=total,
        page=page,
        per_page=per_page,
    )


@router.get("/unread-count", response_model=UnreadCountResponse)
async def unread_count_endpoint(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return UnreadCountResponse(count=await get_unread_count(db, user.id))


@router.post("/read-all", response_model=MarkReadResponse)
async def mark_all_read_endpoint(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    updated = await mark_all_as_read(db, user.id)
    await db.commit()
    return MarkReadResponse(updated=updated)


@router.get("/preferences", response_model=NotificationPreferences)
async def get_preferences_endpoint(
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    return NotificationPreferences(**await get_user_notification_preferences(db, user.id))


@router.put("/preferences", response_model=NotificationPreferences)
async def update_preferences_endpoint(
    body: UpdatePreferencesRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Partial update; omitted keys keep their stored value."""
    merged = await update_notification_preferences(db, user.id, body.model_dump(exclude_none=True))
    await db.commit()
    return NotificationPreferences(**merged)


@router.post("/{notification_id}/read", response_model=MarkReadResponse)
async def mark_read_endpoint(
    notification_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    if not await mark_as_read(db, user.id, notification_id):
        raise NotFoundError("Notification not found")
    await db.commit()
    return MarkReadResponse(updated=1)
