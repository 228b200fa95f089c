"""Session models.

Includes: Workspace (SQL), AgentSession (SQL), request/response bodies for the
sessions API (Pydantic).
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlmodel import JSON, Column, SQLModel
from sqlmodel import Field as SQLField

SessionStatus = Literal["active", "ended", "error"]

DEFAULT_SKILLS = ["linktree-editor"]


class Workspace(SQLModel, table=True):
    """A tenant. Holds its own engine key (BYOK)."""

    __tablename__ = "workspace"

    id: str = SQLField(primary_key=True)
    name: str
    engine_api_key: str | None = None  # Stored by the key-management layer
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


class AgentSession(SQLModel, table=True):
    """One logical multi-turn conversation with the agent engine.

    status == "active" implies ended_at is None. turns_used and tokens_used
    only ever grow. resumption_token is assigned by the engine on the first
    turn and reused for every later turn.
    """

    __tablename__ = "agent_session"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    workspace_id: str = SQLField(index=True)
    status: str = "active"  # "active" | "ended" | "error"
    skill_names: list[str] = SQLField(default_factory=lambda: list(DEFAULT_SKILLS), sa_column=Column(JSON))
    resumption_token: str | None = None
    page_id: str | None = None
    sandbox_id: str | None = None
    max_turns: int = 10
    turns_used: int = 0
    tokens_used: int = 0
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    ended_at: datetime | None = None


# === Pydantic-only models (API bodies) ===


class CreateSessionRequest(BaseModel):
    page_id: str | None = None
    skill_names: list[str] = Field(default_factory=lambda: list(DEFAULT_SKILLS))
    use_sandbox: bool = False
    max_turns: int = Field(default=10, ge=1, le=50)


class CreateSessionResponse(BaseModel):
    session_id: str
    stream_url: str


class SendMessageRequest(BaseModel):
    content: str = Field(min_length=1, max_length=10_000)
    structured: bool = False


class SessionDetail(BaseModel):
    id: str
    workspace_id: str
    status: SessionStatus
    skill_names: list[str]
    resumption_token: str | None
    page_id: str | None
    sandbox_id: str | None
    max_turns: int
    turns_used: int
    tokens_used: int
    created_at: datetime
    ended_at: datetime | None
