from __future__ import annotations

import logging
import os
from collections.abc import Callable
from datetime import datetime, timezone

from fastapi import FastAPI
from fastapi.responses import JSONResponse

_log = logging.getLogger("feteer.health")


def add_standard_health(
    app: FastAPI,
    env_key: str = "ENV",
    path: str = "/health",
    check: Callable[[], None] | None = None,
):
    """
    Mount a health endpoint on `app`.

    When `check` is given it is called on every request; any exception turns
    the response into a 503 with the database reported as disconnected.
    """

    @app.get(path)
    def _health():
        body = {
            "status": "ok",
            "env": os.getenv(env_key, "dev"),
            "service": app.title,
            "version": getattr(app, "version", None),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if check is None:
            return body
        try:
            check()
        except Exception as e:
            _log.error("health check failed: %s", e)
            body.update({"status": "unhealthy", "database": "disconnected", "error": str(e)})
            return JSONResponse(status_code=503, content=body)
        body["database"] = "connected"
        return body
