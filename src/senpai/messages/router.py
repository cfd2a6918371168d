"""Match chat API endpoints — 3 routes."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.auth.dependencies import get_current_user
from senpai.database import get_session
from senpai.db.models import Message, Profile
from senpai.dependencies import get_redis_dep
from senpai.messages.schemas import (
    MarkMessagesReadResponse,
    MessageListResponse,
    MessageResponse,
    SendMessageRequest,
)
from senpai.messages.service import list_messages, mark_messages_read, send_message

router = APIRouter(prefix="/api/v1/matches", tags=["Messages"])


def _message_response(m: Message) -> MessageResponse:
    return MessageResponse(
        id=str(m.id),
        match_id=str(m.match_id),
        sender_id=str(m.sender_id),
        content=m.content,
        is_read=m.is_read,
        created_at=m.created_at,
    )


@router.get("/{match_id}/messages", response_model=MessageListResponse)
async def list_messages_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    messages = await list_messages(db, match_id, user.id)
    return MessageListResponse(messages=[_message_response(m) for m in messages], total=len(messages))


@router.post("/{match_id}/messages", response_model=MessageResponse, status_code=201)
async def send_message_endpoint(
    match_id: uuid.UUID,
    body: SendMessageRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    message = await send_message(db, match_id, user.id, body.content, redis=redis)
    await db.commit()
    return _message_response(message)


@router.post("/{match_id}/messages/read", response_model=MarkMessagesReadResponse)
async def mark_messages_read_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Mark the partner's messages as read."""
    updated = await mark_messages_read(db, match_id, user.id)
    await db.commit()
    return MarkMessagesReadResponse(updated=updated)
