"""Sessions API: create, inspect, converse (SSE) and end agent sessions.

Endpoints:
    POST   /api/sessions                   create (201)
    GET    /api/sessions/{id}              detail
    GET    /api/sessions/{id}/stream       SSE turn, prompt in ?prompt=
    POST   /api/sessions/{id}/messages     SSE turn, prompt in body
    DELETE /api/sessions/{id}              end

Stream frames are `event: <type>\\ndata: <json>\\n\\n`, one per canonical event,
ending with a `done` or `error` frame.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing

from app.api.deps import WorkspaceContext, get_orchestrator, get_workspace
from app.models.events import StreamEvent
from app.models.session import (
    AgentSession,
    CreateSessionRequest,
    CreateSessionResponse,
    SendMessageRequest,
    SessionDetail,
)
from app.sessions.orchestrator import SessionNotActiveError, SessionNotFoundError, SessionOrchestrator
from app.skills.loader import SkillNotFoundError
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

_SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def _format_sse(event: StreamEvent) -> str:
    """Format one canonical event as a named SSE frame."""
    return f"event: {event.type}\ndata: {event.model_dump_json()}\n\n"


def _detail(session: AgentSession) -> SessionDetail:
    return SessionDetail.model_validate(session.model_dump())


def _load_for_turn(orchestrator: SessionOrchestrator, session_id: str) -> AgentSession:
    try:
        return orchestrator.prepare_turn(session_id)
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")
    except SessionNotActiveError:
        raise HTTPException(status_code=400, detail="Session is not active.")


def _stream_response(
    orchestrator: SessionOrchestrator,
    session: AgentSession,
    prompt: str,
    credential: str,
    structured: bool = False,
) -> StreamingResponse:
    async def event_generator() -> AsyncIterator[str]:
        # One frame per pulled event; closing this generator closes the turn.
        async with aclosing(orchestrator.stream_turn(session, prompt, credential, structured=structured)) as events:
            async for event in events:
                yield _format_sse(event)

    return StreamingResponse(event_generator(), media_type="text/event-stream", headers=_SSE_HEADERS)


@router.post("", response_model=CreateSessionResponse, status_code=201)
async def create_session(
    request: CreateSessionRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> CreateSessionResponse:
    try:
        session = await orchestrator.create_session(workspace.workspace_id, request)
    except (ValueError, SkillNotFoundError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return CreateSessionResponse(session_id=session.id, stream_url=f"/api/sessions/{session.id}/stream")


@router.get("/{session_id}", response_model=SessionDetail)
async def get_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> SessionDetail:
    try:
        return _detail(orchestrator.get_session(session_id))
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")


@router.get("/{session_id}/stream")
async def stream_session(
    session_id: str,
    prompt: str = Query(min_length=1, max_length=10_000),
    workspace: WorkspaceContext = Depends(get_workspace),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    """SSE endpoint for one turn. GET because EventSource only supports GET."""
    session = _load_for_turn(orchestrator, session_id)
    return _stream_response(orchestrator, session, prompt, workspace.credential)


@router.post("/{session_id}/messages")
async def send_message(
    session_id: str,
    request: SendMessageRequest,
    workspace: WorkspaceContext = Depends(get_workspace),
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> StreamingResponse:
    session = _load_for_turn(orchestrator, session_id)
    return _stream_response(orchestrator, session, request.content, workspace.credential, structured=request.structured)


@router.delete("/{session_id}", response_model=SessionDetail)
async def end_session(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> SessionDetail:
    try:
        return _detail(await orchestrator.end_session(session_id))
    except SessionNotFoundError:
        raise HTTPException(status_code=404, detail="Session not found.")
