"""One-off task API: a single structured run outside any session."""

from __future__ import annotations

import logging
from typing import Any

from app.agents.structured import StructuredOutputError
from app.api.deps import WorkspaceContext, get_orchestrator, get_workspace
from app.models.task import OneOffTask
from app.sessions.orchestrator import SessionOrchestrator
from app.skills.loader import SkillNotFoundError
from fastapi import APIRouter, Depends, HTTPException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


@router.post("")
async def run_task(
    task: OneOffTask,
    workspace: WorkspaceContext = Depends(get_workspace),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> dict[str, Any]:
    """Run `task.task_type` against the page snapshot and return the validated response."""
    try:
        result = await orchestrator.run_task(workspace.workspace_id, workspace.credential, task)
    except SkillNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StructuredOutputError as e:
        logger.warning("Task %s failed after %d attempts: %s", task.task_type, e.attempts, e)
        raise HTTPException(status_code=503 if e.retryable else 500, detail=str(e))
    return result.model_dump(mode="json")
