"""SQLModel repositories for sessions, checkpoints and workspaces.

Every call opens its own short-lived DB session, so repositories are safe to
share between concurrently streaming turns.
"""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.db.database import engine as default_engine
from app.models.session import AgentSession, Workspace
from app.models.session_checkpoint import SessionCheckpoint

logger = logging.getLogger(__name__)


class SessionRepository:
    def __init__(self, bind: Engine | None = None) -> None:
        self._engine = bind or default_engine

    def find(self, session_id: str) -> AgentSession | None:
        with Session(self._engine) as db:
            return db.get(AgentSession, session_id)

    def create(self, session: AgentSession) -> AgentSession:
        with Session(self._engine) as db:
            db.add(session)
            db.commit()
            db.refresh(session)
            return session

    def update(
        self,
        session_id: str,
        increments: dict[str, int] | None = None,
        **fields: Any,
    ) -> AgentSession | None:
        """Apply *fields* in one transaction. Returns None if the row is gone.

        *increments* are added to the stored column values in SQL, so two
        turns committing against the same row both count.
        """
        values: dict[str, Any] = dict(fields)
        for name, delta in (increments or {}).items():
            values[name] = getattr(AgentSession, name) + delta
        with Session(self._engine) as db:
            if values:
                result = db.execute(update(AgentSession).where(AgentSession.id == session_id).values(**values))
                if result.rowcount == 0:
                    logger.warning("Update skipped, session %s not found", session_id)
                    return None
                db.commit()
            return db.get(AgentSession, session_id)


class CheckpointRepository:
    def __init__(self, bind: Engine | None = None) -> None:
        self._engine = bind or default_engine

    def create(self, checkpoint: SessionCheckpoint) -> SessionCheckpoint:
        with Session(self._engine) as db:
            db.add(checkpoint)
            db.commit()
            db.refresh(checkpoint)
            return checkpoint

    def find(self, checkpoint_id: str) -> SessionCheckpoint | None:
        with Session(self._engine) as db:
            return db.get(SessionCheckpoint, checkpoint_id)

    def list_for_session(self, session_id: str) -> list[SessionCheckpoint]:
        """Checkpoints for a session, oldest first."""
        with Session(self._engine) as db:
            rows = db.exec(
                select(SessionCheckpoint)
                .where(SessionCheckpoint.session_id == session_id)
                .order_by(SessionCheckpoint.created_at)
            ).all()
            return list(rows)


class WorkspaceRepository:
    def __init__(self, bind: Engine | None = None) -> None:
        self._engine = bind or default_engine

    def find(self, workspace_id: str) -> Workspace | None:
        with Session(self._engine) as db:
            return db.get(Workspace, workspace_id)

    def create(self, workspace: Workspace) -> Workspace:
        with Session(self._engine) as db:
            db.add(workspace)
            db.commit()
            db.refresh(workspace)
            return workspace
