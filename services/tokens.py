"""Issue and verify the signed, time-limited tokens used by the API.

Four purposes exist:

* ``access`` and ``refresh`` are Flask-JWT-Extended tokens signed with
  ``JWT_SECRET_KEY``; their ``type`` claim keeps one from being used as the
  other.
* ``verify_email`` and ``reset_password`` are single-purpose PyJWT tokens,
  each signed with its own secret so they can never pass ``jwt_required``.
  Reset tokens also carry a fingerprint of the password hash they were issued
  against, which makes them single use.
"""

from __future__ import annotations

import hashlib
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from flask import current_app
from flask_jwt_extended import create_access_token, create_refresh_token, decode_token
from flask_jwt_extended.exceptions import JWTExtendedException

from models.user import User
from utils.errors import ExpiredToken, InvalidToken

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"
VERIFY_EMAIL = "verify_email"
RESET_PASSWORD = "reset_password"

# purpose -> (config key for the TTL, config key for the signing secret)
_EMAIL_PURPOSES = {
    VERIFY_EMAIL: ("VERIFY_EMAIL_TOKEN_EXPIRES", "JWT_VERIFY_SECRET_KEY"),
    RESET_PASSWORD: ("RESET_PASSWORD_TOKEN_EXPIRES", "JWT_RESET_SECRET_KEY"),
}
PURPOSES = (ACCESS, REFRESH, VERIFY_EMAIL, RESET_PASSWORD)
ALGORITHM = "HS256"


def password_fingerprint(password_hash: str) -> str:
    return hashlib.sha256((password_hash or "").encode("utf-8")).hexdigest()[:16]


def issue_token(user: User, purpose: str, ttl: Optional[timedelta] = None) -> str:
    """Return a signed token for ``user`` valid for ``ttl`` (or the configured default)."""

    if purpose == ACCESS:
        return create_access_token(
            identity=str(user.id),
            additional_claims={"role": user.role},
            expires_delta=ttl,
        )
    if purpose == REFRESH:
        return create_refresh_token(
            identity=str(user.id),
            expires_delta=ttl,
        )
    if purpose not in _EMAIL_PURPOSES:
        raise ValueError(f"Unknown token purpose: {purpose!r}")

    ttl_key, secret_key = _EMAIL_PURPOSES[purpose]
    now = datetime.now(timezone.utc)
    lifetime = ttl if ttl is not None else current_app.config[ttl_key]
    claims = {
        "sub": str(user.id),
        "purpose": purpose,
        "iat": now,
        "exp": now + lifetime,
        "jti": uuid.uuid4().hex,
    }
    if purpose == RESET_PASSWORD:
        claims["pwd"] = password_fingerprint(user.password_hash)
    return jwt.encode(claims, current_app.config[secret_key], algorithm=ALGORITHM)


def verify_token(token: str, purpose: str) -> dict:
    """Return the claims of ``token`` or raise ``ExpiredToken``/``InvalidToken``."""

    if purpose not in PURPOSES:
        raise ValueError(f"Unknown token purpose: {purpose!r}")
    if not token or not isinstance(token, str):
        raise InvalidToken()

    try:
        if purpose in (ACCESS, REFRESH):
            claims = decode_token(token)
            matches = claims.get("type") == purpose
        else:
            _, secret_key = _EMAIL_PURPOSES[purpose]
            claims = jwt.decode(
                token,
                current_app.config[secret_key],
                algorithms=[ALGORITHM],
                options={"require": ["exp", "sub"]},
            )
            matches = claims.get("purpose") == purpose
    except jwt.ExpiredSignatureError:
        raise ExpiredToken()
    except (jwt.InvalidTokenError, JWTExtendedException) as exc:
        logger.info("Rejected %s token: %s", purpose, exc)
        raise InvalidToken()

    if not matches:
        logger.info("Rejected token presented for the wrong purpose (%s)", purpose)
        raise InvalidToken()
    return claims


def user_id_from_claims(claims: dict) -> int:
    try:
        return int(claims["sub"])
    except (KeyError, TypeError, ValueError):
        raise InvalidToken()
