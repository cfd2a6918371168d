"""Match lifecycle API endpoints — 8 routes.

Applications (2), Matches (5), Roles (1).
"""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.auth.dependencies import get_current_user
from senpai.database import get_session
from senpai.db.models import Match, Profile
from senpai.dependencies import get_redis_dep
from senpai.errors import ForbiddenError
from senpai.matches.roles import Role, derive_role, normalize_post_type, partner_id
from senpai.matches.schemas import (
    CancelMatchRequest,
    MatchDetailResponse,
    MatchListResponse,
    MatchResponse,
    RoleResponse,
    StatusBadgeResponse,
)
from senpai.matches.service import (
    MatchContext,
    accept_application,
    cancel_match,
    confirm_completion,
    get_match,
    get_match_context,
    list_user_matches,
    reject_application,
    report_completion,
)
from senpai.matches.state import derive_display_status
from senpai.messages.service import has_messages
from senpai.reviews.service import can_submit_review, get_review_by_reviewer

router = APIRouter(prefix="/api/v1", tags=["Matches"])


# ── Helper ──


def _str_or_none(value: Any) -> str | None:
    return str(value) if value is not None else None


def _match_fields(
    match: Match,
    ctx: MatchContext,
    viewer_id: uuid.UUID,
    partner_name: str | None = None,
) -> dict[str, Any]:
    badge = derive_display_status(match, viewer_id, partner_name)
    return {
        "id": str(match.id),
        "application_id": str(match.application_id),
        "status": match.status,
        "matched_at": match.matched_at,
        "completed_by": _str_or_none(match.completed_by),
        "completed_at": match.completed_at,
        "confirmed_by": _str_or_none(match.confirmed_by),
        "confirmed_at": match.confirmed_at,
        "cancelled_at": match.cancelled_at,
        "cancel_reason": match.cancel_reason,
        "post_id": str(ctx.post_id),
        "post_title": ctx.post_title,
        "post_type": ctx.post_type.value,
        "post_owner_id": str(ctx.post_owner_id),
        "applicant_id": str(ctx.applicant_id),
        "my_role": ctx.role_of(viewer_id).value,
        "partner_id": str(ctx.partner_of(viewer_id)),
        "display_status": StatusBadgeResponse(
            status=badge.status.value,
            label_ja=badge.label_ja,
            label_en=badge.label_en,
            detail_ja=badge.detail_ja,
            detail_en=badge.detail_en,
            reported_by_viewer=badge.reported_by_viewer,
            action_required=badge.action_required,
        ),
    }


async def _build_match_response(db: AsyncSession, match: Match, viewer_id: uuid.UUID) -> MatchResponse:
    """Re-read the context and build the viewer's view of a match."""
    ctx = await get_match_context(db, match.id)
    return MatchResponse(**_match_fields(match, ctx, viewer_id))


# ── Application Endpoints (2) ──


@router.post("/applications/{application_id}/accept", response_model=MatchResponse, status_code=201)
async def accept_application_endpoint(
    application_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Accept a pending application (post owner only). Opens the match."""
    match = await accept_application(db, application_id, user.id, redis=redis)
    await db.commit()
    return await _build_match_response(db, match, user.id)


@router.post("/applications/{application_id}/reject", status_code=200)
async def reject_application_endpoint(
    application_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Reject a pending application (post owner only)."""
    application = await reject_application(db, application_id, user.id, redis=redis)
    await db.commit()
    return {"id": str(application.id), "status": application.status}


# ── Match Endpoints (5) ──


@router.get("/matches", response_model=MatchListResponse)
async def list_matches_endpoint(
    role: Role | None = Query(None),
    status: str = Query("all", pattern="^(all|active|completed|cancelled)$"),
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """List the caller's matches. ``role=senpai`` is the teach list, ``role=kouhai`` the challenge list."""
    items = await list_user_matches(db, user.id, role=role, status=status)
    return MatchListResponse(
        matches=[MatchResponse(**_match_fields(m, ctx, user.id)) for m, ctx in items],
        total=len(items),
    )


@router.get("/matches/{match_id}", response_model=MatchDetailResponse)
async def get_match_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Match detail for the chat header (participants only)."""
    ctx = await get_match_context(db, match_id)
    if not ctx.has_participant(user.id):
        raise ForbiddenError("You are not a participant of this match")

    match = await get_match(db, match_id)
    partner = await db.get(Profile, ctx.partner_of(user.id))
    return MatchDetailResponse(
        **_match_fields(match, ctx, user.id, partner.display_name if partner else None),
        has_messages=await has_messages(db, match_id),
        has_reviewed=await get_review_by_reviewer(db, match_id, user.id) is not None,
        can_review=await can_submit_review(db, match_id, user.id),
    )


@router.post("/matches/{match_id}/report-completion", response_model=MatchResponse)
async def report_completion_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Report that the collaboration is done. The partner confirms next."""
    match = await report_completion(db, match_id, user.id, redis=redis)
    await db.commit()
    return await _build_match_response(db, match, user.id)


@router.post("/matches/{match_id}/confirm-completion", response_model=MatchResponse)
async def confirm_completion_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Confirm the partner's completion report."""
    match = await confirm_completion(db, match_id, user.id, redis=redis)
    await db.commit()
    return await _build_match_response(db, match, user.id)


@router.post("/matches/{match_id}/cancel", response_model=MatchResponse)
async def cancel_match_endpoint(
    match_id: uuid.UUID,
    body: CancelMatchRequest | None = None,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Cancel an active match."""
    reason = body.reason if body else None
    match = await cancel_match(db, match_id, user.id, reason, redis=redis)
    await db.commit()
    return await _build_match_response(db, match, user.id)


# ── Roles (1) ──


@router.get("/roles/derive", response_model=RoleResponse)
async def derive_role_endpoint(
    post_type: str = Query(..., description="teach|learn (support|challenge accepted)"),
    post_owner_id: uuid.UUID = Query(...),
    applicant_id: uuid.UUID = Query(...),
    viewer_id: uuid.UUID = Query(...),
):
    """Derive the viewer's role without touching storage."""
    canonical = normalize_post_type(post_type)
    role = derive_role(canonical, post_owner_id, applicant_id, viewer_id)
    return RoleResponse(
        role=role.value,
        partner_id=str(partner_id(post_owner_id, applicant_id, viewer_id)),
        post_type=canonical.value,
    )
