from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.responses import RedirectResponse

from .auth import authenticate, is_admin
from .tokens import Principal

_log = logging.getLogger("feteer.auth")

PUBLIC_ROUTES = (
    "/login",
    "/api/auth/login",
    "/api/auth/logout",
    "/api/auth/check",
    "/health",
    "/api/health",
    "/favicon.ico",
    "/static/",
)
ADMIN_ROUTES = ("/api/admin/", "/admin")

PUBLIC = "public"
AUTHENTICATED = "authenticated"
ADMIN = "admin"


@dataclass(frozen=True)
class Decision:
    action: str  # allow|reject|redirect
    status: int = 200
    detail: str = ""
    location: Optional[str] = None


def _matches(path: str, prefix: str) -> bool:
    if prefix.endswith("/"):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + "/")


def classify(path: str) -> str:
    if any(_matches(path, p) for p in PUBLIC_ROUTES):
        return PUBLIC
    if path == "/api/admin" or any(_matches(path, p) for p in ADMIN_ROUTES):
        return ADMIN
    return AUTHENTICATED


def decide(path: str, principal: Optional[Principal]) -> Decision:
    kind = classify(path)
    if kind == PUBLIC:
        return Decision("allow")
    is_api = path.startswith("/api/")
    if principal is None:
        if is_api:
            return Decision("reject", status=401, detail="Authentication required")
        return Decision("redirect", status=307, location="/login")
    if kind == ADMIN and not is_admin(principal):
        if is_api:
            return Decision("reject", status=403, detail="Admin access required")
        return Decision("redirect", status=307, location="/")
    return Decision("allow")


async def route_guard(request: Request, call_next):
    """
    Allow, reject or redirect every request before it reaches a route.

    The decoded principal is left on `request.state.principal` so handlers do
    not decode the token a second time.
    """
    path = request.url.path
    principal = None if classify(path) == PUBLIC else authenticate(request)
    request.state.principal = principal
    d = decide(path, principal)
    if d.action == "reject":
        _log.info("guard rejected %s %s with %s", request.method, path, d.status)
        return JSONResponse(status_code=d.status, content={"detail": d.detail})
    if d.action == "redirect":
        return RedirectResponse(url=d.location or "/login", status_code=d.status)
    return await call_next(request)
