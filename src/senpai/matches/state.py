"""Match status transitions and the derived status badge.

Stored states: active -> completed, active -> cancelled. Both terminal.
``active`` has two derived sub-states, no report yet and awaiting
confirmation, which exist only as combinations of ``completed_by`` and
``confirmed_by``.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from senpai.errors import InvalidStateError


class MatchStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class DisplayStatus(str, Enum):
    ACTIVE = "active"
    AWAITING_CONFIRMATION = "awaiting_confirmation"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


VALID_TRANSITIONS: dict[MatchStatus, list[MatchStatus]] = {
    MatchStatus.ACTIVE: [MatchStatus.COMPLETED, MatchStatus.CANCELLED],
    MatchStatus.COMPLETED: [],
    MatchStatus.CANCELLED: [],
}

TERMINAL_STATUSES = frozenset({MatchStatus.COMPLETED, MatchStatus.CANCELLED})


def validate_transition(current_status: str, target_status: str) -> None:
    """Validate a state transition. Raises InvalidStateError if invalid."""
    current = MatchStatus(current_status)
    target = MatchStatus(target_status)
    valid = VALID_TRANSITIONS[current]
    if target not in valid:
        raise InvalidStateError(
            f"Invalid transition: {current.value} -> {target.value}. "
            f"Valid transitions: {[s.value for s in valid]}"
        )


def is_terminal(status: str) -> bool:
    return MatchStatus(status) in TERMINAL_STATUSES


def is_awaiting_confirmation(match: Any) -> bool:
    return (
        match.status == MatchStatus.ACTIVE.value
        and match.completed_by is not None
        and match.confirmed_by is None
    )


@dataclass(frozen=True)
class StatusBadge:
    status: DisplayStatus
    label_ja: str
    label_en: str
    detail_ja: str | None = None
    detail_en: str | None = None
    reported_by_viewer: bool = False
    action_required: bool = False


def derive_display_status(match: Any, viewer_id: object, partner_name: str | None = None) -> StatusBadge:
    """Status badge for one viewer.

    The awaiting-confirmation badge reads differently for the reporter, who
    waits on the partner, and for the other party, who has to act.
    """
    if match.status == MatchStatus.COMPLETED.value:
        return StatusBadge(DisplayStatus.COMPLETED, "完了", "Completed")
    if match.status == MatchStatus.CANCELLED.value:
        return StatusBadge(DisplayStatus.CANCELLED, "キャンセル", "Cancelled")
    if match.completed_by is not None:
        if match.completed_by == viewer_id:
            return StatusBadge(
                DisplayStatus.AWAITING_CONFIRMATION,
                "確認待ち",
                "Awaiting confirmation",
                detail_ja="相手の承認待ち",
                detail_en="Waiting on partner",
                reported_by_viewer=True,
            )
        name = partner_name or "相手"
        return StatusBadge(
            DisplayStatus.AWAITING_CONFIRMATION,
            "確認待ち",
            "Awaiting confirmation",
            detail_ja=f"{name}が完了報告",
            detail_en=f"{partner_name or 'Partner'} reported completion",
            action_required=True,
        )
    return StatusBadge(DisplayStatus.ACTIVE, "進行中", "Active")
