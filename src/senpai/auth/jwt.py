"""
Bearer token verification.

Access tokens are issued by the hosted auth provider as HS256 JWTs signed with
the project's shared secret. ``sub`` is the user's profile id and ``aud`` is
``authenticated`` for signed-in users.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import jwt

from senpai.config import get_settings


def create_access_token(user_id: uuid.UUID | str, expires_minutes: int | None = None) -> str:
    """
    Create an access token the way the auth provider does.

    Used by development tooling and tests; production tokens come from the
    provider.

    Args:
        user_id: The user's profile id.
        expires_minutes: Override for the configured lifetime.

    Returns:
        Encoded JWT string.
    """
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_minutes if expires_minutes is not None else settings.jwt_access_token_expire_minutes
    payload: dict[str, Any] = {
        "sub": str(user_id),
        "aud": settings.jwt_audience,
        "role": "authenticated",
        "iat": now,
        "exp": now + timedelta(minutes=lifetime),
    }
    if settings.jwt_issuer:
        payload["iss"] = settings.jwt_issuer
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def verify_token(token: str) -> dict[str, Any]:
    """
    Decode and verify an access token.

    Raises:
        jwt.InvalidTokenError: On bad signature, expiry, audience or a
            malformed subject.
    """
    settings = get_settings()
    options: dict[str, Any] = {"require": ["sub", "exp"]}
    payload: dict[str, Any] = jwt.decode(
        token,
        settings.jwt_secret,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
        issuer=settings.jwt_issuer,
        options=options,
    )
    try:
        uuid.UUID(str(payload["sub"]))
    except ValueError as e:
        raise jwt.InvalidTokenError("Token subject is not a user id") from e
    return payload
