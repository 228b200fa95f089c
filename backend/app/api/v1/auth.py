"""Authentication helper endpoints."""

from __future__ import annotations

from app.config import settings
from app.security.stream_token import issue_stream_token, stream_path_for
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

router = APIRouter(prefix="/api/auth", tags=["auth"])

_STREAM_TOKEN_TTL_SECONDS = 120


class StreamTokenRequest(BaseModel):
    session_id: str


class StreamTokenResponse(BaseModel):
    token: str
    expires_in_seconds: int
    path: str


@router.post("/stream-token", response_model=StreamTokenResponse)
async def create_stream_token(req: StreamTokenRequest) -> StreamTokenResponse:
    """Issue a short-lived token bound to one session's stream path."""
    if not settings.api_key:
        raise HTTPException(status_code=400, detail="API key auth is disabled.")
    path = stream_path_for(req.session_id)
    try:
        token = issue_stream_token(api_key=settings.api_key, path=path, ttl_seconds=_STREAM_TOKEN_TTL_SECONDS)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid session id.")
    return StreamTokenResponse(token=token, expires_in_seconds=_STREAM_TOKEN_TTL_SECONDS, path=path)
