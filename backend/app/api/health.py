"""Health check endpoint: database, engine credential, sandbox backend."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from app.config import settings
from fastapi import APIRouter
from pydantic import BaseModel
from sqlalchemy import text

logger = logging.getLogger(__name__)

router = APIRouter()

VERSION = "0.1.0"

# Set by main.py lifespan
_sandbox_provider: str | None = None


def set_sandbox_provider(name: str | None) -> None:
    global _sandbox_provider
    _sandbox_provider = name


class HealthStatus(BaseModel):
    status: str  # "healthy" | "degraded" | "unhealthy"
    version: str
    checks: dict[str, dict]
    timestamp: datetime


@router.get("/health", response_model=HealthStatus)
async def health_check() -> HealthStatus:
    checks: dict[str, dict] = {}
    healthy = True
    has_warning = False

    # 1. SQLite DB
    try:
        from app.db.database import engine

        with engine.connect() as conn:
            conn.execute(text("SELECT 1")).fetchone()
        checks["database"] = {"status": "ok", "detail": engine.url.get_backend_name()}
    except Exception as e:
        logger.error("Health check database failure: %s", e)
        checks["database"] = {"status": "error", "detail": str(e)[:100]}
        healthy = False

    # 2. Engine credential
    if settings.anthropic_api_key:
        checks["engine"] = {"status": "ok", "detail": "default credential configured"}
    else:
        checks["engine"] = {"status": "warning", "detail": "ANTHROPIC_API_KEY not set (workspace keys only)"}
        has_warning = True

    # 3. Sandbox backend
    if _sandbox_provider is None:
        checks["sandbox"] = {"status": "warning", "detail": "not initialized"}
        has_warning = True
    else:
        checks["sandbox"] = {"status": "ok", "detail": f"provider={_sandbox_provider}"}

    if not healthy:
        status = "unhealthy"
    else:
        status = "degraded" if has_warning else "healthy"

    return HealthStatus(
        status=status,
        version=VERSION,
        checks=checks,
        timestamp=datetime.now(timezone.utc),
    )
