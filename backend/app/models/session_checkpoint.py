"""SessionCheckpoint: a named, immutable snapshot of a session's sandbox.

The provider_checkpoint_id is opaque and only meaningful to the sandbox
backend that produced it. Restoring a checkpoint never deletes it.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

from pydantic import BaseModel, Field
from sqlmodel import Field as SQLField
from sqlmodel import SQLModel


class SessionCheckpoint(SQLModel, table=True):
    """Persisted checkpoint record. One row per checkpoint taken."""

    __tablename__ = "session_checkpoint"

    id: str = SQLField(default_factory=lambda: str(uuid4()), primary_key=True)
    session_id: str = SQLField(index=True, foreign_key="agent_session.id")
    provider_checkpoint_id: str
    label: str | None = None
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))


class CreateCheckpointRequest(BaseModel):
    label: str | None = Field(default=None, max_length=100)


class CheckpointDetail(BaseModel):
    id: str
    session_id: str
    provider_checkpoint_id: str
    label: str | None
    created_at: datetime


class RestoreResponse(BaseModel):
    success: bool = True
    restored_to: str
