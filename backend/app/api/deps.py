"""Shared FastAPI dependencies: the wired orchestrator and workspace context."""

from __future__ import annotations

from dataclasses import dataclass

from app.security.credentials import CredentialResolver
from app.sessions.orchestrator import SessionOrchestrator
from app.skills.loader import SkillRepository
from fastapi import Header, HTTPException

# Module-level references, set by main.py at startup
_orchestrator: SessionOrchestrator | None = None
_credentials: CredentialResolver | None = None
_skills: SkillRepository | None = None


def set_dependencies(
    orchestrator: SessionOrchestrator | None,
    credentials: CredentialResolver | None,
    skills: SkillRepository | None,
) -> None:
    """Wire up the service objects (called from main.py lifespan)."""
    global _orchestrator, _credentials, _skills
    _orchestrator = orchestrator
    _credentials = credentials
    _skills = skills


def get_orchestrator() -> SessionOrchestrator:
    if _orchestrator is None:
        raise HTTPException(status_code=503, detail="Session orchestrator not initialized.")
    return _orchestrator


def get_skills() -> SkillRepository:
    if _skills is None:
        raise HTTPException(status_code=503, detail="Skill repository not initialized.")
    return _skills


@dataclass
class WorkspaceContext:
    workspace_id: str
    credential: str


def get_workspace(x_workspace_id: str = Header(default="default")) -> WorkspaceContext:
    """Workspace from X-Workspace-ID, with the engine key it should run under."""
    if _credentials is None:
        raise HTTPException(status_code=503, detail="Credential resolver not initialized.")
    return WorkspaceContext(workspace_id=x_workspace_id, credential=_credentials.resolve(x_workspace_id))
