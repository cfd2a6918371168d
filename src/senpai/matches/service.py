"""Match lifecycle business logic.

Rules:
- A match starts ``active`` when the post owner accepts an application
- The first participant to report completion is recorded in ``completed_by``
- Only the other participant can confirm; confirmation completes the match
- Either participant can cancel an active match
- ``completed`` and ``cancelled`` are terminal

Every transition is a single conditional UPDATE guarded by the state it
expects. When the guard matches no row the current row is re-read only to
choose the error; the write itself never depends on a prior read.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.config import get_settings
from senpai.db.models import Application, Match, Post
from senpai.errors import (
    AlreadyExistsError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from senpai.matches.roles import PostType, Role, derive_role, normalize_post_type, partner_id
from senpai.matches.state import MatchStatus, is_terminal
from senpai.notifications.service import (
    MATCH_CANCELLED,
    MATCH_COMPLETED,
    MATCH_COMPLETION_REPORTED,
    create_notification,
    emit_match_event,
)

logger = logging.getLogger(__name__)

STATUS_FILTERS = {"all", "active", "completed", "cancelled"}


@dataclass(frozen=True)
class MatchContext:
    """Read-only projection of the post and application behind a match."""

    match_id: uuid.UUID
    application_id: uuid.UUID
    post_id: uuid.UUID
    post_type: PostType
    post_owner_id: uuid.UUID
    applicant_id: uuid.UUID
    post_title: str

    def has_participant(self, user_id: object) -> bool:
        return user_id in (self.post_owner_id, self.applicant_id)

    def role_of(self, user_id: object) -> Role:
        return derive_role(self.post_type, self.post_owner_id, self.applicant_id, user_id)

    def partner_of(self, user_id: object) -> uuid.UUID:
        return partner_id(self.post_owner_id, self.applicant_id, user_id)  # type: ignore[return-value]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _context_query():
    return (
        select(
            Match.id,
            Application.id,
            Post.id,
            Post.type,
            Post.user_id,
            Application.applicant_id,
            Post.title,
        )
        .join(Application, Match.application_id == Application.id)
        .join(Post, Application.post_id == Post.id)
    )


def _row_to_context(row: Any) -> MatchContext:
    match_id, application_id, post_id, post_type, owner_id, applicant_id, title = row
    return MatchContext(
        match_id=match_id,
        application_id=application_id,
        post_id=post_id,
        post_type=normalize_post_type(post_type),
        post_owner_id=owner_id,
        applicant_id=applicant_id,
        post_title=title,
    )


async def get_match(db: AsyncSession, match_id: uuid.UUID) -> Match:
    """Get the current stored state of a match."""
    result = await db.execute(
        select(Match).where(Match.id == match_id).execution_options(populate_existing=True)
    )
    match = result.scalar_one_or_none()
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


async def get_match_context(db: AsyncSession, match_id: uuid.UUID) -> MatchContext:
    """Post type, owner, applicant and title for a match."""
    result = await db.execute(_context_query().where(Match.id == match_id))
    row = result.one_or_none()
    if row is None:
        raise NotFoundError(f"Match {match_id} not found")
    return _row_to_context(row)


async def is_participant(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    try:
        ctx = await get_match_context(db, match_id)
    except NotFoundError:
        return False
    return ctx.has_participant(user_id)


async def _participant_context(db: AsyncSession, match_id: uuid.UUID, user_id: uuid.UUID) -> MatchContext:
    ctx = await get_match_context(db, match_id)
    if not ctx.has_participant(user_id):
        raise ForbiddenError("You are not a participant of this match")
    return ctx


# ── Transitions ──


async def report_completion(
    db: AsyncSession,
    match_id: uuid.UUID,
    user_id: uuid.UUID,
    redis: Any | None = None,
) -> Match:
    """Record the first completion report. The partner must then confirm."""
    ctx = await _participant_context(db, match_id, user_id)

    result = await db.execute(
        update(Match)
        .where(
            Match.id == match_id,
            Match.status == MatchStatus.ACTIVE.value,
            Match.completed_by.is_(None),
        )
        .values(completed_by=user_id, completed_at=_now())
        .execution_options(synchronize_session=False)
    )
    match = await get_match(db, match_id)

    if result.rowcount == 0:
        if is_terminal(match.status):
            raise InvalidStateError(f"Match is already {match.status}")
        if match.completed_by == user_id:
            raise InvalidStateError("You have already reported completion")
        raise InvalidStateError("Your partner already reported completion; confirm it instead")

    logger.info("Match %s: completion reported by %s", match_id, user_id)
    await emit_match_event(
        db,
        MATCH_COMPLETION_REPORTED,
        match_id,
        user_id,
        ctx.partner_of(user_id),
        title="完了報告が届きました",
        message=f"「{ctx.post_title}」の完了報告が届きました。確認してください。",
        redis=redis,
    )
    return match


async def confirm_completion(
    db: AsyncSession,
    match_id: uuid.UUID,
    user_id: uuid.UUID,
    redis: Any | None = None,
) -> Match:
    """Confirm the partner's completion report and complete the match."""
    ctx = await _participant_context(db, match_id, user_id)

    now = _now()
    result = await db.execute(
        update(Match)
        .where(
            Match.id == match_id,
            Match.status == MatchStatus.ACTIVE.value,
            Match.completed_by.is_not(None),
            Match.completed_by != user_id,
            Match.confirmed_by.is_(None),
        )
        .values(
            confirmed_by=user_id,
            confirmed_at=now,
            status=MatchStatus.COMPLETED.value,
            completed_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    match = await get_match(db, match_id)

    if result.rowcount == 0:
        if is_terminal(match.status):
            raise InvalidStateError(f"Match is already {match.status}")
        if match.completed_by is None:
            raise InvalidStateError("No completion report to confirm")
        if match.completed_by == user_id:
            raise ForbiddenError("You cannot confirm your own completion report")
        raise InvalidStateError("Completion has already been confirmed")

    logger.info("Match %s: completion confirmed by %s", match_id, user_id)
    for recipient in (ctx.post_owner_id, ctx.applicant_id):
        await emit_match_event(
            db,
            MATCH_COMPLETED,
            match_id,
            user_id,
            recipient,
            title="マッチが完了しました",
            message=f"「{ctx.post_title}」が完了しました。感想を送りましょう！",
            redis=redis,
        )
    return match


async def cancel_match(
    db: AsyncSession,
    match_id: uuid.UUID,
    user_id: uuid.UUID,
    reason: str | None = None,
    redis: Any | None = None,
) -> Match:
    """Cancel an active match."""
    max_len = get_settings().cancel_reason_max_length
    reason = (reason or "").strip() or None
    if reason is not None and len(reason) > max_len:
        raise ValidationError(f"Cancel reason must be at most {max_len} characters")

    ctx = await _participant_context(db, match_id, user_id)

    result = await db.execute(
        update(Match)
        .where(Match.id == match_id, Match.status == MatchStatus.ACTIVE.value)
        .values(
            status=MatchStatus.CANCELLED.value,
            cancelled_at=_now(),
            cancel_reason=reason,
        )
        .execution_options(synchronize_session=False)
    )
    match = await get_match(db, match_id)

    if result.rowcount == 0:
        raise InvalidStateError(f"Match is already {match.status}")

    logger.info("Match %s cancelled by %s", match_id, user_id)
    await emit_match_event(
        db,
        MATCH_CANCELLED,
        match_id,
        user_id,
        ctx.partner_of(user_id),
        title="マッチがキャンセルされました",
        message=reason,
        redis=redis,
    )
    return match


# ── Applications ──


async def accept_application(
    db: AsyncSession,
    application_id: uuid.UUID,
    owner_id: uuid.UUID,
    redis: Any | None = None,
) -> Match:
    """Accept a pending application and open its match in the same transaction."""
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    post = await db.get(Post, application.post_id)
    if post is None:
        raise NotFoundError(f"Post {application.post_id} not found")
    if post.user_id != owner_id:
        raise ForbiddenError("Only the post owner can accept applications")

    result = await db.execute(
        update(Application)
        .where(Application.id == application_id, Application.status == "pending")
        .values(status="accepted", updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        await db.refresh(application)
        raise InvalidStateError(f"Application is already {application.status}")

    match = Match(application_id=application_id, status=MatchStatus.ACTIVE.value, matched_at=_now())
    db.add(match)
    try:
        await db.flush()
    except IntegrityError as e:
        await db.rollback()
        raise AlreadyExistsError("A match already exists for this application") from e

    accepted_result = await db.execute(
        select(func.count())
        .select_from(Application)
        .where(Application.post_id == post.id, Application.status == "accepted")
    )
    if accepted_result.scalar_one() >= post.max_applicants:
        post.status = "closed"
        await db.flush()

    logger.info("Application %s accepted; match %s created", application_id, match.id)
    await create_notification(
        db,
        application.applicant_id,
        "application_accepted",
        "応募が承認されました",
        message=f"「{post.title}」のマッチングが成立しました。",
        link=f"/matches/{match.id}",
        metadata={
            "match_id": str(match.id),
            "actor_id": str(owner_id),
            "recipient_id": str(application.applicant_id),
        },
        redis=redis,
    )
    return match


async def reject_application(
    db: AsyncSession,
    application_id: uuid.UUID,
    owner_id: uuid.UUID,
    redis: Any | None = None,
) -> Application:
    """Reject a pending application."""
    application = await db.get(Application, application_id)
    if application is None:
        raise NotFoundError(f"Application {application_id} not found")
    post = await db.get(Post, application.post_id)
    if post is None or post.user_id != owner_id:
        raise ForbiddenError("Only the post owner can reject applications")

    result = await db.execute(
        update(Application)
        .where(Application.id == application_id, Application.status == "pending")
        .values(status="rejected", updated_at=_now())
        .execution_options(synchronize_session=False)
    )
    await db.refresh(application)
    if result.rowcount == 0:
        raise InvalidStateError(f"Application is already {application.status}")

    await create_notification(
        db,
        application.applicant_id,
        "application_rejected",
        "応募が見送られました",
        message=f"「{post.title}」への応募は見送られました。",
        redis=redis,
    )
    return application


# ── Listing ──


async def list_user_matches(
    db: AsyncSession,
    user_id: uuid.UUID,
    role: Role | None = None,
    status: str = "all",
) -> list[tuple[Match, MatchContext]]:
    """The user's matches, newest first, optionally filtered by derived role and status."""
    if status not in STATUS_FILTERS:
        raise ValidationError(f"Invalid status filter: {status}. Must be one of {sorted(STATUS_FILTERS)}")

    q = (
        select(Match, Application.id, Post.id, Post.type, Post.user_id, Application.applicant_id, Post.title)
        .join(Application, Match.application_id == Application.id)
        .join(Post, Application.post_id == Post.id)
        .where(or_(Post.user_id == user_id, Application.applicant_id == user_id))
        .order_by(Match.matched_at.desc())
    )
    if status != "all":
        q = q.where(Match.status == status)

    result = await db.execute(q)
    items: list[tuple[Match, MatchContext]] = []
    for row in result:
        match = row[0]
        ctx = _row_to_context((match.id, *row[1:]))
        if role is not None and ctx.role_of(user_id) is not role:
            continue
        items.append((match, ctx))
    return items
