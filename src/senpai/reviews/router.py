"""Review API endpoints — 6 routes."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from senpai.auth.dependencies import get_current_user
from senpai.database import get_session
from senpai.db.models import Profile, Review
from senpai.dependencies import get_redis_dep
from senpai.errors import ForbiddenError, NotFoundError
from senpai.matches.roles import Role
from senpai.matches.service import get_match_context
from senpai.reviews.badges import ALL_BADGES, allowed_badges
from senpai.reviews.schemas import (
    BadgeResponse,
    ReviewEligibilityResponse,
    ReviewListResponse,
    ReviewResponse,
    SubmitReviewRequest,
    UserStatsResponse,
)
from senpai.reviews.service import (
    can_submit_review,
    get_match_reviews,
    get_received_reviews,
    get_user_stats,
    submit_review,
)

router = APIRouter(prefix="/api/v1", tags=["Reviews"])


def _review_response(review: Review) -> ReviewResponse:
    return ReviewResponse(
        id=str(review.id),
        match_id=str(review.match_id),
        reviewer_id=str(review.reviewer_id),
        reviewee_id=str(review.reviewee_id),
        reviewer_role=review.reviewer_role,
        badges=list(review.badges or []),
        comment=review.comment,
        created_at=review.created_at,
    )


@router.get("/reviews/badges", response_model=list[BadgeResponse])
async def list_badges_endpoint(role: Role | None = Query(None)):
    """Badge vocabulary. With ``role``, only the badges that reviewer may award."""
    keys = allowed_badges(role) if role is not None else ALL_BADGES.keys()
    return [BadgeResponse(key=k, **ALL_BADGES[k]) for k in ALL_BADGES if k in keys]


@router.get("/matches/{match_id}/reviews", response_model=ReviewListResponse)
async def list_match_reviews_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Reviews left on a match (participants only)."""
    ctx = await get_match_context(db, match_id)
    if not ctx.has_participant(user.id):
        raise ForbiddenError("You are not a participant of this match")
    reviews = await get_match_reviews(db, match_id)
    return ReviewListResponse(reviews=[_review_response(r) for r in reviews], total=len(reviews))


@router.get("/matches/{match_id}/reviews/eligibility", response_model=ReviewEligibilityResponse)
async def review_eligibility_endpoint(
    match_id: uuid.UUID,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
):
    """Whether the caller may review this match now, and with which badges."""
    can_submit = await can_submit_review(db, match_id, user.id)
    if not can_submit:
        return ReviewEligibilityResponse(can_submit=False)

    ctx = await get_match_context(db, match_id)
    role = ctx.role_of(user.id)
    return ReviewEligibilityResponse(
        can_submit=True,
        my_role=role.value,
        allowed_badges=sorted(allowed_badges(role)),
    )


@router.post("/matches/{match_id}/reviews", response_model=ReviewResponse, status_code=201)
async def submit_review_endpoint(
    match_id: uuid.UUID,
    body: SubmitReviewRequest,
    user: Profile = Depends(get_current_user),
    db: AsyncSession = Depends(get_session),
    redis: Any = Depends(get_redis_dep),
):
    """Submit the caller's single review for a completed match."""
    review = await submit_review(
        db,
        match_id,
        user.id,
        body.reviewee_id,
        body.reviewer_role,
        body.badges,
        body.comment,
        redis=redis,
    )
    await db.commit()
    return _review_response(review)


@router.get("/users/{user_id}/reviews", response_model=ReviewListResponse)
async def list_received_reviews_endpoint(
    user_id: uuid.UUID,
    role: Role | None = Query(None, description="Reviewer's role: senpai or kouhai"),
    db: AsyncSession = Depends(get_session),
):
    """Reviews a user received, newest first."""
    if await db.get(Profile, user_id) is None:
        raise NotFoundError("User not found")
    reviews = await get_received_reviews(db, user_id, role)
    return ReviewListResponse(reviews=[_review_response(r) for r in reviews], total=len(reviews))


@router.get("/users/{user_id}/stats", response_model=UserStatsResponse)
async def user_stats_endpoint(
    user_id: uuid.UUID,
    db: AsyncSession = Depends(get_session),
):
    """Completed matches per role and received badge counts."""
    if await db.get(Profile, user_id) is None:
        raise NotFoundError("User not found")
    stats = await get_user_stats(db, user_id)
    return UserStatsResponse(
        teach_count=stats.teach_count,
        challenge_count=stats.challenge_count,
        review_count=stats.review_count,
        badges=stats.badges,
    )
