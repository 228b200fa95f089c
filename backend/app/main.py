"""Agent Editor FastAPI Application.

Entry point for the backend server. The lifespan wires one instance of each
service (sandbox manager, skills, agent service, orchestrator) and hands them
to the routers.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from app.agents.service import AgentService
from app.api.deps import set_dependencies
from app.api.health import router as health_router
from app.api.health import set_sandbox_provider
from app.api.v1.auth import router as auth_router
from app.api.v1.checkpoints import router as checkpoints_router
from app.api.v1.sessions import router as sessions_router
from app.api.v1.skills import router as skills_router
from app.api.v1.tasks import router as tasks_router
from app.config import settings
from app.db.database import create_db_and_tables
from app.execution.sandbox_manager import SandboxManager
from app.middleware.auth import APIKeyAuthMiddleware
from app.security.credentials import CredentialResolver
from app.sessions.orchestrator import SessionOrchestrator
from app.skills.composer import PromptComposer
from app.skills.loader import SkillRepository
from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown."""
    create_db_and_tables()

    sandboxes = SandboxManager.from_settings()
    skills = SkillRepository(settings.skills_dir or None)
    orchestrator = SessionOrchestrator(
        service=AgentService(),
        sandboxes=sandboxes,
        composer=PromptComposer(skills),
    )
    set_dependencies(orchestrator, CredentialResolver(), skills)
    set_sandbox_provider(sandboxes.provider_name)
    logger.info("Agent editor started (environment=%s, sandbox=%s)", settings.environment, sandboxes.provider_name)

    yield

    set_dependencies(None, None, None)
    set_sandbox_provider(None)
    await sandboxes.aclose()


app = FastAPI(
    title="Agent Editor",
    description="Multi-turn agent sessions with sandboxes and structured output",
    version="0.1.0",
    lifespan=lifespan,
)

# Middleware (order matters: last added = outermost)
app.add_middleware(APIKeyAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_credentials=True,
    allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Workspace-ID"],
)


# Global exception handler: internal details never reach the client
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    if isinstance(exc, HTTPException):
        raise exc
    logger.error("Unhandled exception on %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error."},
    )


# Routes
app.include_router(health_router)
app.include_router(auth_router)
app.include_router(sessions_router)
app.include_router(checkpoints_router)
app.include_router(skills_router)
app.include_router(tasks_router)
