"""Role derivation for the two parties of a match.

A match never stores who teaches and who learns. The role is recomputed from
the post type and whether the viewer owns the post:

    post type   viewer is owner   role
    teach       yes               senpai
    teach       no                kouhai
    learn       yes               kouhai
    learn       no                senpai

``support``/``challenge`` are accepted as aliases for ``teach``/``learn`` at
the boundary only; everything past ``normalize_post_type`` uses ``PostType``.
"""

from __future__ import annotations

from enum import Enum

from senpai.errors import ValidationError


class PostType(str, Enum):
    TEACH = "teach"
    LEARN = "learn"


class Role(str, Enum):
    SENPAI = "senpai"
    KOUHAI = "kouhai"

    @property
    def counterpart(self) -> Role:
        return Role.KOUHAI if self is Role.SENPAI else Role.SENPAI


POST_TYPE_ALIASES: dict[str, PostType] = {
    "teach": PostType.TEACH,
    "support": PostType.TEACH,
    "learn": PostType.LEARN,
    "challenge": PostType.LEARN,
}


def normalize_post_type(value: str | PostType) -> PostType:
    """Map either vocabulary onto the canonical post type."""
    if isinstance(value, PostType):
        return value
    post_type = POST_TYPE_ALIASES.get(str(value).strip().lower())
    if post_type is None:
        raise ValidationError(f"Unknown post type: {value!r}")
    return post_type


def derive_role(
    post_type: str | PostType,
    post_owner_id: object,
    applicant_id: object,
    viewer_id: object,
) -> Role:
    """Classify the viewer as senpai or kouhai for this match."""
    del applicant_id
    owner_role = Role.SENPAI if normalize_post_type(post_type) is PostType.TEACH else Role.KOUHAI
    return owner_role if viewer_id == post_owner_id else owner_role.counterpart


def partner_id(post_owner_id: object, applicant_id: object, viewer_id: object) -> object:
    """The participant who is not the viewer."""
    return applicant_id if viewer_id == post_owner_id else post_owner_id


def senpai_id(post_type: str | PostType, post_owner_id: object, applicant_id: object) -> object:
    if normalize_post_type(post_type) is PostType.TEACH:
        return post_owner_id
    return applicant_id


def kouhai_id(post_type: str | PostType, post_owner_id: object, applicant_id: object) -> object:
    if normalize_post_type(post_type) is PostType.TEACH:
        return applicant_id
    return post_owner_id
