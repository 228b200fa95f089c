"""Tests for the SQLModel repositories and credential resolution."""

from __future__ import annotations

from unittest.mock import MagicMock

from app.models.session import AgentSession, Workspace
from app.models.session_checkpoint import SessionCheckpoint
from app.security.credentials import CredentialResolver


def test_session_create_find_update(session_repo):
    created = session_repo.create(AgentSession(workspace_id="ws-1", skill_names=["linktree-editor", "extra"]))

    found = session_repo.find(created.id)
    assert found.workspace_id == "ws-1"
    assert found.skill_names == ["linktree-editor", "extra"]
    assert found.status == "active"
    assert found.turns_used == 0

    updated = session_repo.update(created.id, resumption_token="abc", turns_used=3)
    assert updated.resumption_token == "abc"
    assert session_repo.find(created.id).turns_used == 3


def test_session_increments_apply_to_stored_values(session_repo):
    created = session_repo.create(AgentSession(workspace_id="ws-1"))
    session_repo.update(created.id, increments={"turns_used": 2, "tokens_used": 40})

    updated = session_repo.update(created.id, increments={"turns_used": 3, "tokens_used": 60}, resumption_token="abc")

    assert updated.turns_used == 5
    assert updated.tokens_used == 100
    assert updated.resumption_token == "abc"


def test_session_find_missing(session_repo):
    assert session_repo.find("missing") is None


def test_session_update_missing_returns_none(session_repo):
    assert session_repo.update("missing", status="ended") is None


def test_checkpoints_listed_oldest_first(session_repo, checkpoint_repo):
    session = session_repo.create(AgentSession(workspace_id="ws-1"))
    other = session_repo.create(AgentSession(workspace_id="ws-1"))
    first = checkpoint_repo.create(SessionCheckpoint(session_id=session.id, provider_checkpoint_id="cp-1"))
    second = checkpoint_repo.create(SessionCheckpoint(session_id=session.id, provider_checkpoint_id="cp-2", label="v2"))
    checkpoint_repo.create(SessionCheckpoint(session_id=other.id, provider_checkpoint_id="cp-x"))

    listed = checkpoint_repo.list_for_session(session.id)

    assert [c.id for c in listed] == [first.id, second.id]
    assert checkpoint_repo.find(second.id).label == "v2"


def test_resolver_prefers_workspace_key(workspace_repo):
    workspace_repo.create(Workspace(id="ws-byok", name="BYOK", engine_api_key="sk-workspace"))
    resolver = CredentialResolver(workspace_repo, default_key="sk-default")
    assert resolver.resolve("ws-byok") == "sk-workspace"


def test_resolver_falls_back_to_default(workspace_repo):
    workspace_repo.create(Workspace(id="ws-plain", name="Plain"))
    resolver = CredentialResolver(workspace_repo, default_key="sk-default")
    assert resolver.resolve("ws-plain") == "sk-default"
    assert resolver.resolve("unknown") == "sk-default"


def test_resolver_lookup_failure_uses_default():
    workspaces = MagicMock()
    workspaces.find.side_effect = RuntimeError("database is locked")
    resolver = CredentialResolver(workspaces, default_key="sk-default")
    assert resolver.resolve("ws-1") == "sk-default"
