"""Checkpoint API: snapshot and restore a session's sandbox."""

from __future__ import annotations

import logging

from app.api.deps import get_orchestrator
from app.execution.base import SandboxError, SandboxNotFoundError
from app.models.session_checkpoint import (
    CheckpointDetail,
    CreateCheckpointRequest,
    RestoreResponse,
    SessionCheckpoint,
)
from app.sessions.orchestrator import (
    CheckpointNotFoundError,
    SandboxNotAttachedError,
    SessionNotFoundError,
    SessionOrchestrator,
)
from fastapi import APIRouter, Depends, HTTPException

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions/{session_id}/checkpoints", tags=["checkpoints"])


def _detail(checkpoint: SessionCheckpoint) -> CheckpointDetail:
    return CheckpointDetail.model_validate(checkpoint.model_dump())


def _sandbox_failure(session_id: str, action: str, e: SandboxError) -> HTTPException:
    if isinstance(e, SandboxNotFoundError):
        return HTTPException(status_code=409, detail="Sandbox is no longer available for this session.")
    logger.error("Sandbox %s failed for session %s: %s", action, session_id, e)
    return HTTPException(status_code=502, detail=f"Sandbox {action} failed.")


@router.post("", response_model=CheckpointDetail, status_code=201)
async def create_checkpoint(
    session_id: str,
    request: CreateCheckpointRequest,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> CheckpointDetail:
    try:
        checkpoint = await orchestrator.checkpoint(session_id, label=request.label)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")
    except SandboxNotAttachedError:
        raise HTTPException(status_code=400, detail="Session has no active sandbox.")
    except SandboxError as e:
        raise _sandbox_failure(session_id, "checkpoint", e)
    return _detail(checkpoint)


@router.get("", response_model=list[CheckpointDetail])
async def list_checkpoints(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> list[CheckpointDetail]:
    try:
        return [_detail(c) for c in orchestrator.list_checkpoints(session_id)]
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")


@router.post("/{checkpoint_id}/restore", response_model=RestoreResponse)
async def restore_checkpoint(
    session_id: str,
    checkpoint_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> RestoreResponse:
    try:
        await orchestrator.restore(session_id, checkpoint_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")
    except CheckpointNotFoundError:
        raise HTTPException(status_code=404, detail="Checkpoint not found.")
    except SandboxNotAttachedError:
        raise HTTPException(status_code=400, detail="Session has no active sandbox.")
    except SandboxError as e:
        raise _sandbox_failure(session_id, "restore", e)
    return RestoreResponse(restored_to=checkpoint_id)
