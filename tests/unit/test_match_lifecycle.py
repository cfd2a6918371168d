"""Service tests for the match lifecycle: report, confirm, cancel, accept."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import create_pairing, create_profile, minutes_ago
from senpai.db.models import Application, Match, Notification, Post
from senpai.errors import (
    AlreadyExistsError,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from senpai.matches.roles import Role
from senpai.matches.service import (
    accept_application,
    cancel_match,
    confirm_completion,
    get_match_context,
    is_participant,
    list_user_matches,
    reject_application,
    report_completion,
)
from senpai.notifications.service import MATCH_CANCELLED, MATCH_COMPLETED, MATCH_COMPLETION_REPORTED


async def _notifications(db: AsyncSession, user_id: uuid.UUID, type_: str) -> list[Notification]:
    result = await db.execute(
        select(Notification).where(Notification.user_id == user_id, Notification.type == type_)
    )
    return list(result.scalars().all())


class TestReportCompletion:
    @pytest.mark.asyncio
    async def test_first_report_recorded(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        match = await report_completion(db_session, p.match_id, p.applicant_id)

        assert match.status == "active"
        assert match.completed_by == p.applicant_id
        assert match.completed_at is not None
        assert match.confirmed_by is None

    @pytest.mark.asyncio
    async def test_partner_notified(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        await report_completion(db_session, p.match_id, p.applicant_id)

        [n] = await _notifications(db_session, p.owner_id, MATCH_COMPLETION_REPORTED)
        assert n.notification_metadata == {
            "match_id": str(p.match_id),
            "actor_id": str(p.applicant_id),
            "recipient_id": str(p.owner_id),
        }
        assert n.link == f"/matches/{p.match_id}"
        assert await _notifications(db_session, p.applicant_id, MATCH_COMPLETION_REPORTED) == []

    @pytest.mark.asyncio
    async def test_first_reporter_wins(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        await report_completion(db_session, p.match_id, p.owner_id)

        with pytest.raises(InvalidStateError, match="confirm it instead"):
            await report_completion(db_session, p.match_id, p.applicant_id)
        with pytest.raises(InvalidStateError, match="already reported"):
            await report_completion(db_session, p.match_id, p.owner_id)

        match = (await db_session.execute(select(Match).where(Match.id == p.match_id))).scalar_one()
        assert match.completed_by == p.owner_id

    @pytest.mark.asyncio
    async def test_outsider_forbidden(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        outsider = await create_profile(db_session)
        with pytest.raises(ForbiddenError):
            await report_completion(db_session, p.match_id, outsider.id)

    @pytest.mark.asyncio
    async def test_unknown_match(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        with pytest.raises(NotFoundError):
            await report_completion(db_session, uuid.uuid4(), p.owner_id)


class TestConfirmCompletion:
    @pytest.mark.asyncio
    async def test_report_then_confirm(self, db_session: AsyncSession):
        """Applicant reports, reporter cannot confirm, owner confirms."""
        p = await create_pairing(db_session)

        match = await report_completion(db_session, p.match_id, p.applicant_id)
        assert match.completed_by == p.applicant_id

        with pytest.raises(ForbiddenError):
            await confirm_completion(db_session, p.match_id, p.applicant_id)

        match = await confirm_completion(db_session, p.match_id, p.owner_id)
        assert match.status == "completed"
        assert match.confirmed_by == p.owner_id
        assert match.confirmed_at is not None
        assert match.completed_by == p.applicant_id

    @pytest.mark.asyncio
    async def test_both_parties_notified(self, db_session: AsyncSession):
        p = await create_pairing(db_session, completed_by="owner")
        await confirm_completion(db_session, p.match_id, p.applicant_id)

        assert len(await _notifications(db_session, p.owner_id, MATCH_COMPLETED)) == 1
        assert len(await _notifications(db_session, p.applicant_id, MATCH_COMPLETED)) == 1

    @pytest.mark.asyncio
    async def test_nothing_to_confirm(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        with pytest.raises(InvalidStateError, match="No completion report"):
            await confirm_completion(db_session, p.match_id, p.owner_id)


class TestTerminalStates:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", ["completed", "cancelled"])
    async def test_no_transitions_out_of_terminal(self, db_session: AsyncSession, status: str):
        p = await create_pairing(db_session, status=status)
        for actor in (p.owner_id, p.applicant_id):
            with pytest.raises(InvalidStateError):
                await report_completion(db_session, p.match_id, actor)
            with pytest.raises(InvalidStateError):
                await confirm_completion(db_session, p.match_id, actor)
            with pytest.raises(InvalidStateError):
                await cancel_match(db_session, p.match_id, actor)

    @pytest.mark.asyncio
    async def test_cancel_after_completion(self, db_session: AsyncSession):
        p = await create_pairing(db_session, completed_by="applicant")
        await confirm_completion(db_session, p.match_id, p.owner_id)
        with pytest.raises(InvalidStateError, match="already completed"):
            await cancel_match(db_session, p.match_id, p.owner_id)


class TestCancelMatch:
    @pytest.mark.asyncio
    async def test_cancel_with_reason(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        match = await cancel_match(db_session, p.match_id, p.owner_id, "  予定が合わなくなりました  ")

        assert match.status == "cancelled"
        assert match.cancelled_at is not None
        assert match.cancel_reason == "予定が合わなくなりました"
        [n] = await _notifications(db_session, p.applicant_id, MATCH_CANCELLED)
        assert n.message == "予定が合わなくなりました"

    @pytest.mark.asyncio
    async def test_cancel_while_awaiting_confirmation(self, db_session: AsyncSession):
        p = await create_pairing(db_session, completed_by="owner")
        match = await cancel_match(db_session, p.match_id, p.applicant_id)
        assert match.status == "cancelled"
        assert match.cancel_reason is None

    @pytest.mark.asyncio
    async def test_reason_too_long(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        with pytest.raises(ValidationError):
            await cancel_match(db_session, p.match_id, p.owner_id, "x" * 501)

    @pytest.mark.asyncio
    async def test_outsider_cannot_cancel(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        outsider = await create_profile(db_session)
        with pytest.raises(ForbiddenError):
            await cancel_match(db_session, p.match_id, outsider.id)


class TestApplications:
    @pytest.mark.asyncio
    async def test_accept_opens_match(self, db_session: AsyncSession):
        p = await create_pairing(db_session, with_match=False)
        match = await accept_application(db_session, p.application_id, p.owner_id)
        await db_session.commit()

        assert match.status == "active"
        assert match.application_id == p.application_id
        application = (
            await db_session.execute(
                select(Application).where(Application.id == p.application_id).execution_options(populate_existing=True)
            )
        ).scalar_one()
        assert application.status == "accepted"
        post = await db_session.get(Post, p.post_id)
        assert post.status == "closed"
        [n] = await _notifications(db_session, p.applicant_id, "application_accepted")
        assert n.notification_metadata["match_id"] == str(match.id)

    @pytest.mark.asyncio
    async def test_only_owner_accepts(self, db_session: AsyncSession):
        p = await create_pairing(db_session, with_match=False)
        with pytest.raises(ForbiddenError):
            await accept_application(db_session, p.application_id, p.applicant_id)

    @pytest.mark.asyncio
    async def test_accept_twice(self, db_session: AsyncSession):
        p = await create_pairing(db_session, with_match=False)
        await accept_application(db_session, p.application_id, p.owner_id)
        with pytest.raises(InvalidStateError, match="already accepted"):
            await accept_application(db_session, p.application_id, p.owner_id)

    @pytest.mark.asyncio
    async def test_existing_match_is_already_exists(self, db_session: AsyncSession):
        """A pending application that somehow already has a match hits the unique guard."""
        p = await create_pairing(db_session)
        application_id, owner_id = p.application_id, p.owner_id
        await db_session.execute(
            Application.__table__.update().where(Application.id == application_id).values(status="pending")
        )
        await db_session.commit()

        with pytest.raises(AlreadyExistsError):
            await accept_application(db_session, application_id, owner_id)

    @pytest.mark.asyncio
    async def test_unknown_application(self, db_session: AsyncSession):
        owner = await create_profile(db_session)
        with pytest.raises(NotFoundError):
            await accept_application(db_session, uuid.uuid4(), owner.id)

    @pytest.mark.asyncio
    async def test_reject(self, db_session: AsyncSession):
        p = await create_pairing(db_session, with_match=False)
        application = await reject_application(db_session, p.application_id, p.owner_id)
        assert application.status == "rejected"
        assert len(await _notifications(db_session, p.applicant_id, "application_rejected")) == 1

        with pytest.raises(InvalidStateError):
            await reject_application(db_session, p.application_id, p.owner_id)


class TestListing:
    @pytest.mark.asyncio
    async def test_context_and_participation(self, db_session: AsyncSession):
        p = await create_pairing(db_session, post_type="challenge")
        ctx = await get_match_context(db_session, p.match_id)

        assert ctx.role_of(p.owner_id) is Role.KOUHAI
        assert ctx.role_of(p.applicant_id) is Role.SENPAI
        assert ctx.partner_of(p.owner_id) == p.applicant_id
        assert await is_participant(db_session, p.match_id, p.owner_id)
        assert not await is_participant(db_session, p.match_id, uuid.uuid4())
        assert not await is_participant(db_session, uuid.uuid4(), p.owner_id)

    @pytest.mark.asyncio
    async def test_role_and_status_filters(self, db_session: AsyncSession):
        teaching = await create_pairing(db_session, post_type="teach", matched_at=minutes_ago(10))
        me = teaching.owner_id
        # Same user applies to someone else's learn post: senpai again, completed
        other = await create_profile(db_session)
        post = Post(user_id=other.id, title="英語を教えてほしい", type="learn")
        db_session.add(post)
        await db_session.flush()
        application = Application(post_id=post.id, applicant_id=me, status="accepted")
        db_session.add(application)
        await db_session.flush()
        db_session.add(Match(application_id=application.id, status="completed", matched_at=minutes_ago(5)))
        # And is a kouhai on a third match
        owner3 = await create_profile(db_session)
        post3 = Post(user_id=owner3.id, title="数学", type="teach")
        db_session.add(post3)
        await db_session.flush()
        app3 = Application(post_id=post3.id, applicant_id=me, status="accepted")
        db_session.add(app3)
        await db_session.flush()
        db_session.add(Match(application_id=app3.id, status="active", matched_at=minutes_ago(1)))
        await db_session.commit()

        everything = await list_user_matches(db_session, me)
        assert len(everything) == 3
        assert [ctx.post_title for _, ctx in everything] == ["数学", "英語を教えてほしい", "線形代数を教えます"]

        senpai = await list_user_matches(db_session, me, role=Role.SENPAI)
        assert len(senpai) == 2
        kouhai = await list_user_matches(db_session, me, role=Role.KOUHAI)
        assert [ctx.post_title for _, ctx in kouhai] == ["数学"]

        completed = await list_user_matches(db_session, me, status="completed")
        assert len(completed) == 1

    @pytest.mark.asyncio
    async def test_bad_status_filter(self, db_session: AsyncSession):
        p = await create_pairing(db_session)
        with pytest.raises(ValidationError):
            await list_user_matches(db_session, p.owner_id, status="pending")
