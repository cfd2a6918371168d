"""Review badge vocabularies.

A senpai reviews their kouhai, so a senpai picks from the kouhai-directed
badges; a kouhai picks from the senpai-directed ones. Common badges are open
to both.
"""

from __future__ import annotations

from collections.abc import Iterable

from senpai.config import get_settings
from senpai.errors import ValidationError
from senpai.matches.roles import Role

# Describe a senpai (chosen by a kouhai)
SENPAI_BADGES: dict[str, dict[str, str]] = {
    "clear": {"emoji": "🎓", "label": "わかりやすい！"},
    "helpful": {"emoji": "💡", "label": "ためになった！"},
    "godsenpai": {"emoji": "🌟", "label": "神先輩！"},
}

# Describe a kouhai (chosen by a senpai)
KOUHAI_BADGES: dict[str, dict[str, str]] = {
    "eager": {"emoji": "🔥", "label": "熱心だった！"},
    "quicklearner": {"emoji": "✨", "label": "のみこみ早い！"},
    "hardworker": {"emoji": "💪", "label": "がんばり屋！"},
}

COMMON_BADGES: dict[str, dict[str, str]] = {
    "awesome": {"emoji": "👏", "label": "最高だった！"},
    "thanks": {"emoji": "💖", "label": "ありがとう！"},
    "again": {"emoji": "🤝", "label": "また会いたい！"},
}

ALL_BADGES: dict[str, dict[str, str]] = {**SENPAI_BADGES, **KOUHAI_BADGES, **COMMON_BADGES}


def allowed_badges(reviewer_role: Role) -> frozenset[str]:
    """Badges a reviewer in ``reviewer_role`` may award."""
    directed = KOUHAI_BADGES if reviewer_role is Role.SENPAI else SENPAI_BADGES
    return frozenset(directed) | frozenset(COMMON_BADGES)


def validate_badges(reviewer_role: Role, badges: Iterable[str]) -> list[str]:
    """Return the badges in order, or raise ValidationError."""
    selected = list(badges)
    max_badges = get_settings().review_max_badges

    if len(selected) > max_badges:
        raise ValidationError(f"At most {max_badges} badges can be selected")
    if len(set(selected)) != len(selected):
        raise ValidationError("Badges must not repeat")

    unknown = [b for b in selected if b not in ALL_BADGES]
    if unknown:
        raise ValidationError(f"Unknown badge(s): {unknown}")

    wrong_vocab = [b for b in selected if b not in allowed_badges(reviewer_role)]
    if wrong_vocab:
        raise ValidationError(f"Badge(s) {wrong_vocab} cannot be given by a {reviewer_role.value}")

    return selected
