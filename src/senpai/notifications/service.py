"""Notification creation and delivery service.

Notifications are:
1. Filtered by the recipient's notification preferences
2. Persisted in the database
3. Pushed to the recipient via Redis pub/sub when a client is available

Match lifecycle events carry ``match_id``, ``actor_id`` and ``recipient_id``
in their metadata so inbox consumers can route them without re-reading the
match.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.db.models import Notification, Profile
from senpai.errors import NotFoundError, ValidationError
from senpai.redis_client import publish_to_user

logger = logging.getLogger(__name__)

# Lifecycle events
MATCH_COMPLETION_REPORTED = "match_completion_reported"
MATCH_COMPLETED = "match_completed"
MATCH_CANCELLED = "match_cancelled"
REVIEW_RECEIVED = "review_received"

VALID_TYPES = {
    "new_application",
    "application_accepted",
    "application_rejected",
    MATCH_COMPLETION_REPORTED,
    MATCH_COMPLETED,
    MATCH_CANCELLED,
    REVIEW_RECEIVED,
    "new_message",
    "system",
}

# Matches the settings page defaults: everything on
DEFAULT_PREFERENCES: dict[str, bool] = {
    "likes": True,
    "applications": True,
    "messages": True,
    "follows": True,
    "matches": True,
    "questions": True,
    "reviews": True,
}

PREFERENCE_MAP: dict[str, str] = {
    "new_application": "applications",
    "application_accepted": "applications",
    "application_rejected": "applications",
    MATCH_COMPLETION_REPORTED: "matches",
    MATCH_COMPLETED: "matches",
    MATCH_CANCELLED: "matches",
    REVIEW_RECEIVED: "reviews",
    "new_message": "messages",
}


def should_deliver(preferences: dict, type_: str) -> bool:
    """Check if a notification should be delivered based on user preferences."""
    pref_key = PREFERENCE_MAP.get(type_)
    if pref_key is None:
        return True  # system notices always go out
    return bool(preferences.get(pref_key, DEFAULT_PREFERENCES.get(pref_key, True)))


async def get_user_notification_preferences(db: AsyncSession, user_id: uuid.UUID) -> dict[str, bool]:
    """Get user's notification preferences, falling back to defaults."""
    result = await db.execute(select(Profile.notification_settings).where(Profile.id == user_id))
    stored = result.scalar_one_or_none()
    merged = dict(DEFAULT_PREFERENCES)
    if stored:
        merged.update({k: bool(v) for k, v in stored.items() if k in DEFAULT_PREFERENCES})
    return merged


async def update_notification_preferences(
    db: AsyncSession,
    user_id: uuid.UUID,
    changes: dict[str, bool],
) -> dict[str, bool]:
    """Merge ``changes`` into the stored preferences and return the result."""
    unknown = set(changes) - set(DEFAULT_PREFERENCES)
    if unknown:
        raise ValidationError(f"Unknown notification preference(s): {sorted(unknown)}")

    profile = await db.get(Profile, user_id)
    if profile is None:
        raise NotFoundError("Profile not found")

    merged = await get_user_notification_preferences(db, user_id)
    merged.update(changes)
    profile.notification_settings = merged
    await db.flush()
    return merged


async def create_notification(
    db: AsyncSession,
    user_id: uuid.UUID,
    type_: str,
    title: str,
    message: str | None = None,
    link: str | None = None,
    metadata: dict[str, Any] | None = None,
    redis: Any | None = None,
) -> Notification | None:
    """Create a notification and push it to the recipient."""
    if type_ not in VALID_TYPES:
        raise ValueError(f"Invalid notification type: {type_}. Must be one of {sorted(VALID_TYPES)}")

    preferences = await get_user_notification_preferences(db, user_id)
    if not should_deliver(preferences, type_):
        return None

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        link=link,
        notification_metadata=metadata or {},
        created_at=datetime.now(timezone.utc),
    )
    db.add(notification)
    await db.flush()

    if redis is not None:
        await publish_to_user(
            redis,
            user_id,
            "notification",
            {
                "id": str(notification.id),
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "link": notification.link,
                "metadata": notification.notification_metadata,
                "timestamp": notification.created_at.isoformat(),
                "read": False,
            },
        )

    return notification


async def emit_match_event(
    db: AsyncSession,
    event: str,
    match_id: uuid.UUID,
    actor_id: uuid.UUID,
    recipient_id: uuid.UUID,
    title: str,
    message: str | None = None,
    redis: Any | None = None,
) -> Notification | None:
    """Record a lifecycle event for ``recipient_id``."""
    return await create_notification(
        db,
        recipient_id,
        event,
        title,
        message=message,
        link=f"/matches/{match_id}",
        metadata={
            "match_id": str(match_id),
            "actor_id": str(actor_id),
            "recipient_id": str(recipient_id),
        },
        redis=redis,
    )


async def get_notifications(
    db: AsyncSession,
    user_id: uuid.UUID,
    page: int = 1,
    per_page: int = 20,
) -> tuple[list[Notification], int]:
    """Get user's notifications (paginated, most recent first)."""
    offset = (page - 1) * per_page

    total_result = await db.execute(
        select(func.count()).select_from(Notification).where(Notification.user_id == user_id)
    )
    total = total_result.scalar_one()

    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc())
        .offset(offset)
        .limit(per_page)
    )
    return list(result.scalars().all()), total


async def mark_as_read(db: AsyncSession, user_id: uuid.UUID, notification_id: uuid.UUID) -> bool:
    """Mark a single notification as read. Returns True if found."""
    result = await db.execute(
        update(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .values(read=True)
    )
    await db.flush()
    return result.rowcount > 0


async def mark_all_as_read(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Mark all unread notifications as read. Returns count updated."""
    result = await db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
        .values(read=True)
    )
    await db.flush()
    return result.rowcount


async def get_unread_count(db: AsyncSession, user_id: uuid.UUID) -> int:
    """Get count of unread notifications."""
    result = await db.execute(
        select(func.count())
        .select_from(Notification)
        .where(Notification.user_id == user_id, Notification.read.is_(False))
    )
    return result.scalar_one()
