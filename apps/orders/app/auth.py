from __future__ import annotations

import logging
import os
import secrets as _secrets
from typing import Optional

import bcrypt
from fastapi import HTTPException, Request

from .store import OrderStore, User
from .tokens import InvalidToken, Principal, decode_token

_log = logging.getLogger("feteer.auth")

AUTH_COOKIE = "auth-token"
ROLES = ("admin", "cashier")


def _env_or(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v is not None else default


BCRYPT_ROUNDS = int(_env_or("BCRYPT_ROUNDS", "12"))


def extract_token(request: Request) -> Optional[str]:
    # Authorization header wins over the cookie.
    header = request.headers.get("authorization") or ""
    if header.startswith("Bearer "):
        token = header[len("Bearer "):].strip()
        if token:
            return token
    cookie = request.cookies.get(AUTH_COOKIE)
    return cookie or None


def authenticate(request: Request) -> Optional[Principal]:
    token = extract_token(request)
    if not token:
        return None
    try:
        return decode_token(token)
    except InvalidToken as e:
        _log.debug("rejected token: %s", e)
        return None


def is_admin(principal: Optional[Principal]) -> bool:
    return principal is not None and principal.role == "admin"


def is_cashier(principal: Optional[Principal]) -> bool:
    return principal is not None and principal.role == "cashier"


def can_access_orders(principal: Optional[Principal]) -> bool:
    return is_admin(principal) or is_cashier(principal)


def _principal(request: Request) -> Optional[Principal]:
    # The route guard already decoded the token for this request.
    p = getattr(request.state, "principal", None)
    if p is not None:
        return p
    return authenticate(request)


def require_user(request: Request) -> Principal:
    p = _principal(request)
    if p is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    return p


def require_admin(request: Request) -> Principal:
    p = _principal(request)
    if p is None:
        raise HTTPException(status_code=401, detail="unauthorized")
    if not is_admin(p):
        raise HTTPException(status_code=403, detail="admin access required")
    return p


def hash_password(password: str, rounds: Optional[int] = None) -> str:
    salt = bcrypt.gensalt(rounds=rounds or BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def check_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed hash in the users table.
        _log.warning("malformed password hash")
        return False


def verify_credentials(store: OrderStore, username: str, password: str) -> Optional[User]:
    user = store.get_user_by_username(username)
    if user is None or not user.is_active:
        return None
    if not check_password(password, user.password_hash):
        return None
    store.touch_last_login(user.id)
    return user


def ensure_default_admin(store: OrderStore) -> Optional[str]:
    """
    Create the first admin when the users table is empty.

    Credentials come from AUTH_USERNAME / AUTH_PASSWORD; without a password a
    random one is generated and logged once so the counter can still be set up.
    Returns the username created, or None when users already exist.
    """
    if store.count_users() > 0:
        return None
    username = _env_or("AUTH_USERNAME", "admin")
    password = os.getenv("AUTH_PASSWORD")
    if not password:
        if _env_or("ENV", "dev").lower() in ("prod", "production", "staging"):
            raise RuntimeError("AUTH_PASSWORD must be set to create the first admin")
        password = _secrets.token_urlsafe(12)
        _log.warning("created default admin %r with generated password %s", username, password)
    store.create_user(username, hash_password(password), "admin")
    _log.info("default admin %r created", username)
    return username
