"""Per-match chat log: append, list, read receipts."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import exists, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.config import get_settings
from senpai.db.models import Message
from senpai.errors import ForbiddenError, InvalidStateError, ValidationError
from senpai.matches.service import MatchContext, get_match, get_match_context
from senpai.matches.state import MatchStatus
from senpai.notifications.service import create_notification

logger = logging.getLogger(__name__)


async def _require_participant(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> MatchContext:
    ctx = await get_match_context(db, match_id)
    if not ctx.has_participant(user_id):
        raise ForbiddenError("You are not a participant of this match")
    return ctx


async def send_message(
    db: AsyncSession,
    match_id: uuid.UUID,
    sender_id: uuid.UUID,
    content: str,
    redis: Any | None = None,
) -> Message:
    """Append a message from a participant."""
    content = (content or "").strip()
    if not content:
        raise ValidationError("Message must not be empty")
    max_len = get_settings().message_max_length
    if len(content) > max_len:
        raise ValidationError(f"Message must be at most {max_len} characters")

    ctx = await _require_participant(db, match_id, sender_id)
    match = await get_match(db, match_id)
    if match.status == MatchStatus.CANCELLED.value:
        raise InvalidStateError("This match has been cancelled")

    message = Message(
        match_id=match_id,
        sender_id=sender_id,
        content=content,
        created_at=datetime.now(timezone.utc),
    )
    db.add(message)
    await db.flush()

    recipient = ctx.partner_of(sender_id)
    await create_notification(
        db,
        recipient,
        "new_message",
        "新しいメッセージ",
        message=content[:100],
        link=f"/matches/{match_id}",
        metadata={"match_id": str(match_id), "actor_id": str(sender_id), "recipient_id": str(recipient)},
        redis=redis,
    )
    return message


async def list_messages(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> list[Message]:
    """All messages of a match, oldest first."""
    await _require_participant(db, match_id, user_id)
    result = await db.execute(
        select(Message).where(Message.match_id == match_id).order_by(Message.created_at.asc())
    )
    return list(result.scalars().all())


async def mark_messages_read(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> int:
    """Mark the partner's unread messages as read. Returns count updated."""
    await _require_participant(db, match_id, user_id)
    result = await db.execute(
        update(Message)
        .where(
            Message.match_id == match_id,
            Message.sender_id != user_id,
            Message.is_read.is_(False),
        )
        .values(is_read=True)
        .execution_options(synchronize_session=False)
    )
    await db.flush()
    return result.rowcount


async def has_messages(db: AsyncSession, match_id: uuid.UUID) -> bool:
    """Whether anyone has written yet; drives the first-message guidance."""
    result = await db.execute(select(exists().where(Message.match_id == match_id)))
    return bool(result.scalar())
