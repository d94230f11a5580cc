from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Optional

import jwt

_log = logging.getLogger("feteer.auth")

ALGORITHM = "HS256"
_DEV_SECRET = "feteer-dev-secret-change-me"
_warned_dev_secret = False


def _env_or(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v is not None else default


JWT_TTL_SECS = int(_env_or("JWT_TTL_SECS", str(7 * 24 * 60 * 60)))


class InvalidToken(Exception):
    """Token is malformed, badly signed, expired or carries an incomplete claim set."""


@dataclass(frozen=True)
class Principal:
    id: int
    username: str
    role: str


def jwt_secret() -> str:
    """
    Signing secret from JWT_SECRET.

    Production refuses to run without one; dev/test fall back to a fixed
    development secret so a fresh checkout can log in.
    """
    secret = os.getenv("JWT_SECRET")
    if secret:
        return secret
    global _warned_dev_secret
    if _env_or("ENV", "dev").lower() in ("prod", "production", "staging"):
        raise RuntimeError("JWT_SECRET must be set in production")
    if not _warned_dev_secret:
        _log.warning("JWT_SECRET not configured; using development secret")
        _warned_dev_secret = True
    return _DEV_SECRET


def encode_token(principal: Principal, now: Optional[float] = None, ttl_secs: Optional[int] = None) -> str:
    iat = int(now if now is not None else time.time())
    ttl = JWT_TTL_SECS if ttl_secs is None else ttl_secs
    claims = {
        "id": principal.id,
        "username": principal.username,
        "role": principal.role,
        "isAuthenticated": True,
        "iat": iat,
        "exp": iat + ttl,
    }
    return jwt.encode(claims, jwt_secret(), algorithm=ALGORITHM)


def decode_token(token: str, now: Optional[float] = None) -> Principal:
    """
    Verify signature and expiry and return the principal.

    `now` pins the clock for expiry checks; signature is always verified.
    """
    options: dict[str, Any] = {"require": ["exp", "iat"]}
    try:
        if now is None:
            claims = jwt.decode(token, jwt_secret(), algorithms=[ALGORITHM], options=options)
        else:
            options["verify_exp"] = False
            claims = jwt.decode(token, jwt_secret(), algorithms=[ALGORITHM], options=options)
            if int(claims["exp"]) <= int(now):
                raise InvalidToken("token expired")
    except jwt.ExpiredSignatureError as e:
        raise InvalidToken("token expired") from e
    except jwt.InvalidTokenError as e:
        raise InvalidToken(str(e)) from e

    uid = claims.get("id")
    username = claims.get("username")
    role = claims.get("role")
    if not claims.get("isAuthenticated") or not uid or not username or not role:
        raise InvalidToken("incomplete claim set")
    if not isinstance(uid, int) or isinstance(uid, bool):
        raise InvalidToken("invalid id claim")
    return Principal(id=uid, username=str(username), role=str(role))
