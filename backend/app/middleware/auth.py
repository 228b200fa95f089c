"""Service API key authentication middleware.

Bearer token authentication against settings.api_key (API_KEY env var).
When no key is configured, authentication is disabled (development mode).

Supports two auth methods:
  1. Authorization: Bearer <key>   (all endpoints)
  2. ?token=<stream token>         (GET /api/sessions/{id}/stream only, since
                                    EventSource can't set headers)

Exempt paths: /health, /docs, /openapi.json, /redoc
"""

from __future__ import annotations

import logging
import secrets

from app.config import settings
from app.security.stream_token import is_stream_path, verify_stream_token
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse

logger = logging.getLogger(__name__)

_EXEMPT_PATHS = frozenset({"/health", "/docs", "/openapi.json", "/redoc"})


class APIKeyAuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        api_key = settings.api_key
        path = request.url.path

        if not api_key or path in _EXEMPT_PATHS or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            authenticated = secrets.compare_digest(auth_header[7:], api_key)
        elif is_stream_path(path) and request.query_params.get("token"):
            authenticated = verify_stream_token(
                token=request.query_params["token"],
                api_key=api_key,
                path=path,
            )
        else:
            return JSONResponse(
                status_code=401,
                content={"detail": "Missing authentication. Use Authorization: Bearer <key>."},
            )

        if not authenticated:
            logger.warning(
                "Invalid credentials from %s on %s",
                request.client.host if request.client else "unknown",
                path,
            )
            return JSONResponse(status_code=403, content={"detail": "Invalid API key."})

        return await call_next(request)
