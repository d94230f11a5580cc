from __future__ import annotations

from fastapi.middleware.cors import CORSMiddleware

DEFAULT_ORIGINS = ("http://localhost:3000", "http://127.0.0.1:3000")

# Headers the kitchen client sends: bearer auth plus its cache-busting set.
REQUEST_HEADERS = [
    "Authorization",
    "Content-Type",
    "Cache-Control",
    "Pragma",
    "X-Timestamp",
    "X-Request-ID",
]


def parse_origins(allowed: str | None) -> list[str]:
    origins = [o.strip().rstrip("/") for o in (allowed or "").split(",") if o.strip()]
    return origins or list(DEFAULT_ORIGINS)


def configure_cors(app, allowed: str | None):
    """
    Allow the counter UI origins to call the API with the auth cookie.

    A wildcard entry is served without credentials, so the `auth-token`
    cookie never leaves for an origin that was not named.
    """
    origins = parse_origins(allowed)
    wildcard = "*" in origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else origins,
        allow_credentials=not wildcard,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
        allow_headers=REQUEST_HEADERS,
        expose_headers=["X-Request-ID"],
        max_age=600,
    )
