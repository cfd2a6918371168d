"""Shared test fixtures.

Tests run against an in-memory SQLite database (one shared connection) with
the schema created from the ORM metadata. Redis is never initialized, so
realtime push is skipped and notifications are only persisted.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

os.environ.setdefault("SENPAI_LOG_FORMAT", "console")
os.environ.setdefault("SENPAI_REDIS_URL", "")

from senpai.auth.jwt import create_access_token  # noqa: E402
from senpai.config import get_settings  # noqa: E402
from senpai.database import close_db, get_engine, get_session, init_db  # noqa: E402
from senpai.db.base import Base  # noqa: E402
from senpai.db.models import Application, Match, Post, Profile  # noqa: E402
from senpai.main import create_app  # noqa: E402

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@dataclass(frozen=True)
class Pairing:
    """Plain ids of a seeded match, safe to use after a session rollback."""

    owner_id: uuid.UUID
    applicant_id: uuid.UUID
    post_id: uuid.UUID
    application_id: uuid.UUID
    match_id: uuid.UUID | None
    post_type: str


def auth_headers(user_id: uuid.UUID) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


async def create_profile(
    db: AsyncSession,
    username: str | None = None,
    display_name: str | None = None,
    is_banned: bool = False,
) -> Profile:
    username = username or f"user_{uuid.uuid4().hex[:8]}"
    profile = Profile(
        username=username,
        display_name=display_name or username,
        is_banned=is_banned,
    )
    db.add(profile)
    await db.flush()
    return profile


async def create_pairing(
    db: AsyncSession,
    post_type: str = "teach",
    status: str = "active",
    completed_by: str | None = None,
    with_match: bool = True,
    owner_name: str = "オーナー",
    applicant_name: str = "応募者",
    matched_at: datetime | None = None,
) -> Pairing:
    """Seed owner, applicant, post, application and (optionally) a match; commits.

    ``completed_by`` is ``"owner"`` or ``"applicant"``.
    """
    owner = await create_profile(db, display_name=owner_name)
    applicant = await create_profile(db, display_name=applicant_name)
    post = Post(user_id=owner.id, title="線形代数を教えます", type=post_type)
    db.add(post)
    await db.flush()
    application = Application(
        post_id=post.id,
        applicant_id=applicant.id,
        status="accepted" if with_match else "pending",
    )
    db.add(application)
    await db.flush()

    match_id = None
    if with_match:
        now = datetime.now(timezone.utc)
        reporter = {"owner": owner.id, "applicant": applicant.id}.get(completed_by or "")
        match = Match(
            application_id=application.id,
            status=status,
            matched_at=matched_at or now,
            completed_by=reporter,
            completed_at=now if reporter else None,
        )
        if status == "completed":
            match.completed_by = match.completed_by or owner.id
            match.completed_at = now
            match.confirmed_by = applicant.id if match.completed_by == owner.id else owner.id
            match.confirmed_at = now
        if status == "cancelled":
            match.cancelled_at = now
        db.add(match)
        await db.flush()
        match_id = match.id

    pairing = Pairing(
        owner_id=owner.id,
        applicant_id=applicant.id,
        post_id=post.id,
        application_id=application.id,
        match_id=match_id,
        post_type=post_type,
    )
    await db.commit()
    return pairing


def minutes_ago(n: int) -> datetime:
    return datetime.now(timezone.utc) - timedelta(minutes=n)


@pytest_asyncio.fixture
async def database() -> AsyncGenerator[None, None]:
    """Fresh in-memory schema per test."""
    get_settings.cache_clear()
    await init_db(TEST_DATABASE_URL)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: None) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for service tests and assertions."""
    async for session in get_session():
        yield session
        break


@pytest_asyncio.fixture
async def client(database: None) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP test client bound to the in-memory database."""
    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
