"""Shared test fixtures for the agent editor backend tests."""

import os
import sys

import pytest

# Ensure backend is on the path
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///test_agent_editor.db")
os.environ.setdefault("ANTHROPIC_API_KEY", "test")

from app.agents.mock_engine import MockEngine
from app.agents.runner import AgentRunner
from app.agents.service import AgentService
from app.db.database import create_db_and_tables, make_engine
from app.execution.noop_provider import NoopProvider
from app.execution.sandbox_manager import SandboxManager
from app.sessions.orchestrator import SessionOrchestrator
from app.sessions.repository import CheckpointRepository, SessionRepository, WorkspaceRepository
from app.skills.composer import PromptComposer
from app.skills.loader import SkillRepository


@pytest.fixture
def db_engine(tmp_path):
    """Fresh SQLite database per test (auto-cleaned)."""
    engine = make_engine(f"sqlite:///{tmp_path / 'agent_editor.db'}")
    create_db_and_tables(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_repo(db_engine):
    return SessionRepository(db_engine)


@pytest.fixture
def checkpoint_repo(db_engine):
    return CheckpointRepository(db_engine)


@pytest.fixture
def workspace_repo(db_engine):
    return WorkspaceRepository(db_engine)


@pytest.fixture
def skills():
    """Bundled skill library."""
    return SkillRepository()


@pytest.fixture
def sandboxes():
    """SandboxManager over the no-op backend."""
    return SandboxManager(NoopProvider())


@pytest.fixture
def make_orchestrator(session_repo, checkpoint_repo, skills, sandboxes):
    """Factory: orchestrator whose agent engine is the given MockEngine."""

    def _make(engine: MockEngine, sandbox_manager: SandboxManager | None = None) -> SessionOrchestrator:
        return SessionOrchestrator(
            service=AgentService(AgentRunner(engine=engine)),
            sandboxes=sandbox_manager or sandboxes,
            composer=PromptComposer(skills),
            sessions=session_repo,
            checkpoints=checkpoint_repo,
        )

    return _make
