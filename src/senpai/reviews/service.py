"""Review submission and review statistics.

Rules:
- Only the two participants of a match can review, and only each other
- Reviews open once the match is ``completed`` (both sides, uniformly)
- One review per (match, reviewer), backed by a unique constraint
- Badges are scoped by the reviewer's derived role
- Comment is optional, at most 500 characters
"""

from __future__ import annotations

import logging
import uuid
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.config import get_settings
from senpai.db.models import Review
from senpai.errors import (
    AlreadyExistsError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from senpai.matches.roles import Role
from senpai.matches.service import get_match, get_match_context, list_user_matches
from senpai.matches.state import MatchStatus
from senpai.notifications.service import REVIEW_RECEIVED, emit_match_event
from senpai.reviews.badges import ALL_BADGES, validate_badges

logger = logging.getLogger(__name__)


@dataclass
class UserStats:
    teach_count: int = 0
    challenge_count: int = 0
    review_count: int = 0
    badges: dict[str, int] = field(default_factory=lambda: dict.fromkeys(ALL_BADGES, 0))


async def get_review_by_reviewer(
    db: AsyncSession, match_id: uuid.UUID, reviewer_id: uuid.UUID
) -> Review | None:
    result = await db.execute(
        select(Review).where(Review.match_id == match_id, Review.reviewer_id == reviewer_id)
    )
    return result.scalar_one_or_none()


async def can_submit_review(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    """True iff the user took part, the match is completed and they have not reviewed yet."""
    try:
        ctx = await get_match_context(db, match_id)
    except NotFoundError:
        return False
    if not ctx.has_participant(user_id):
        return False

    match = await get_match(db, match_id)
    if match.status != MatchStatus.COMPLETED.value:
        return False
    return await get_review_by_reviewer(db, match_id, user_id) is None


def _clean_comment(comment: str | None) -> str | None:
    if comment is None:
        return None
    comment = comment.strip()
    max_len = get_settings().review_comment_max_length
    if len(comment) > max_len:
        raise ValidationError(f"Comment must be at most {max_len} characters")
    return comment or None


async def submit_review(
    db: AsyncSession,
    match_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    reviewee_id: uuid.UUID,
    reviewer_role: str | Role,
    badges: list[str],
    comment: str | None = None,
    redis: Any | None = None,
) -> Review:
    """Create the reviewer's single review for this match."""
    ctx = await get_match_context(db, match_id)
    if not ctx.has_participant(reviewer_id):
        raise ForbiddenError("You are not a participant of this match")
    if reviewee_id != ctx.partner_of(reviewer_id):
        raise ForbiddenError("You can only review your partner in this match")

    try:
        role = Role(reviewer_role)
    except ValueError as e:
        raise ValidationError(f"Invalid reviewer role: {reviewer_role!r}") from e
    if role is not ctx.role_of(reviewer_id):
        raise ValidationError(f"Your role in this match is {ctx.role_of(reviewer_id).value}, not {role.value}")

    selected = validate_badges(role, badges)
    comment = _clean_comment(comment)

    match = await get_match(db, match_id)
    if match.status != MatchStatus.COMPLETED.value:
        raise InvalidStateError("Reviews open once the match is completed")

    if await get_review_by_reviewer(db, match_id, reviewer_id) is not None:
        raise AlreadyExistsError("You have already reviewed this match")

    review = Review(
        match_id=match_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        reviewer_role=role.value,
        badges=selected,
        comment=comment,
        created_at=datetime.now(timezone.utc),
    )
    db.add(review)
    try:
        await db.flush()
    except IntegrityError as e:
        # Concurrent duplicate that passed the pre-check
        await db.rollback()
        raise AlreadyExistsError("You have already reviewed this match") from e

    logger.info("Review %s submitted for match %s by %s", review.id, match_id, reviewer_id)
    await emit_match_event(
        db,
        REVIEW_RECEIVED,
        match_id,
        reviewer_id,
        reviewee_id,
        title="感想が届きました",
        message=comment,
        redis=redis,
    )
    return review


async def get_match_reviews(db: AsyncSession, match_id: uuid.UUID) -> list[Review]:
    result = await db.execute(
        select(Review).where(Review.match_id == match_id).order_by(Review.created_at.asc())
    )
    return list(result.scalars().all())


async def get_received_reviews(
    db: AsyncSession,
    user_id: uuid.UUID,
    reviewer_role: Role | None = None,
) -> list[Review]:
    """Reviews the user received, newest first. Filter by the reviewer's role."""
    q = select(Review).where(Review.reviewee_id == user_id)
    if reviewer_role is not None:
        q = q.where(Review.reviewer_role == reviewer_role.value)
    result = await db.execute(q.order_by(Review.created_at.desc()))
    return list(result.scalars().all())


async def get_user_stats(db: AsyncSession, user_id: uuid.UUID) -> UserStats:
    """Completed matches per role and received badge counts."""
    stats = UserStats()

    for _match, ctx in await list_user_matches(db, user_id, status=MatchStatus.COMPLETED.value):
        if ctx.role_of(user_id) is Role.SENPAI:
            stats.teach_count += 1
        else:
            stats.challenge_count += 1

    received = await get_received_reviews(db, user_id)
    stats.review_count = len(received)
    counts = Counter(badge for review in received for badge in review.badges or [])
    for badge, count in counts.items():
        if badge in stats.badges:
            stats.badges[badge] = count
    return stats
