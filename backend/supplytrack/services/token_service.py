# Overview: Bearer token issuance and verification.

"""
Bearer Token Service

Tokens are HS256 JWTs carrying ``userId`` and ``exp``. Login, refresh and
session revocation live outside this service; everything here needs only
to know which user a request acts for.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta, timezone

from flask import current_app
from jose import ExpiredSignatureError, JWTError, jwt

from ..errors import AuthError
from ..extensions import db
from ..models import User
from supplytrack.time_utils import utcnow


@dataclass
class AuthContext:
    """Who the current request acts for."""
    user: User
    claims: dict


def issue_token(user: User, *, expires_in: timedelta | None = None) -> str:
    if expires_in is None:
        expires_in = timedelta(hours=current_app.config["JWT_EXPIRES_HOURS"])
    exp = (utcnow() + expires_in).replace(tzinfo=timezone.utc)
    claims = {"userId": user.id, "email": user.email, "exp": exp}
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_token(token: str) -> dict:
    try:
        return jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except ExpiredSignatureError as exc:
        raise AuthError("Token expired") from exc
    except JWTError as exc:
        raise AuthError("Invalid token") from exc


def authenticate(token: str) -> AuthContext:
    """
    Resolve a bearer token to its user.

    Raises AuthError for bad signatures, expired tokens, tokens without a
    userId claim and users that no longer exist.
    """
    claims = decode_token(token)
    user_id = claims.get("userId")
    if not isinstance(user_id, int) or isinstance(user_id, bool):
        raise AuthError("Invalid token")

    user = db.session.get(User, user_id)
    if user is None:
        raise AuthError("User not found")

    return AuthContext(user=user, claims=claims)
