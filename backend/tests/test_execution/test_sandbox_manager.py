"""Tests for SandboxManager: registry semantics and provider selection."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from app.config import Settings
from app.execution.base import SandboxConfigError, SandboxError, SandboxNotFoundError
from app.execution.docker_provider import DockerProvider
from app.execution.noop_provider import NoopProvider
from app.execution.sandbox_manager import SandboxManager, select_provider
from app.execution.sprites_provider import SpritesProvider


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


# ---------------------------------------------------------------------------
# select_provider()
# ---------------------------------------------------------------------------


class TestSelectProvider:
    def test_sprites_token_selects_microvm(self) -> None:
        provider = select_provider(_settings(sprites_token="tok", environment="production"))
        assert isinstance(provider, SpritesProvider)
        assert provider.name == "microvm"

    def test_token_wins_over_development(self) -> None:
        assert isinstance(select_provider(_settings(sprites_token="tok", environment="development")), SpritesProvider)

    def test_development_selects_noop(self) -> None:
        provider = select_provider(_settings(sprites_token="", environment="development"))
        assert isinstance(provider, NoopProvider)

    @pytest.mark.parametrize("environment", ["production", "test"])
    def test_otherwise_container(self, environment: str) -> None:
        provider = select_provider(_settings(sprites_token="", environment=environment))
        assert isinstance(provider, DockerProvider)
        assert provider.name == "container"

    def test_sprites_without_token_fails_fast(self) -> None:
        with pytest.raises(SandboxConfigError):
            SpritesProvider(token="")

    def test_from_settings(self) -> None:
        manager = SandboxManager.from_settings(_settings(environment="development", sprites_token=""))
        assert manager.provider_name == "none"


# ---------------------------------------------------------------------------
# Lifecycle over the no-op backend
# ---------------------------------------------------------------------------


class TestNoopLifecycle:
    @pytest.mark.asyncio
    async def test_create_registers_entry(self) -> None:
        manager = SandboxManager(NoopProvider())
        sandbox = await manager.create("s1")
        assert sandbox.session_id == "s1"
        assert sandbox.provider == "none"
        assert sandbox.provider_id == "noop-s1"
        assert manager.get("s1") is sandbox

    @pytest.mark.asyncio
    async def test_checkpoint_then_restore(self) -> None:
        manager = SandboxManager(NoopProvider())
        await manager.create("s1")
        token = await manager.checkpoint("s1")
        assert token.startswith("noop-checkpoint-")
        await manager.restore("s1", token)

    @pytest.mark.asyncio
    async def test_checkpoint_unknown_session(self) -> None:
        with pytest.raises(SandboxNotFoundError):
            await SandboxManager(NoopProvider()).checkpoint("missing")

    @pytest.mark.asyncio
    async def test_restore_unknown_session(self) -> None:
        with pytest.raises(SandboxNotFoundError):
            await SandboxManager(NoopProvider()).restore("missing", "tok")

    @pytest.mark.asyncio
    async def test_destroy_is_idempotent(self) -> None:
        manager = SandboxManager(NoopProvider())
        await manager.create("s1")
        await manager.destroy("s1")
        await manager.destroy("s1")
        assert manager.get("s1") is None

    @pytest.mark.asyncio
    async def test_destroy_unknown_is_noop(self) -> None:
        await SandboxManager(NoopProvider()).destroy("never-created")

    def test_get_absent(self) -> None:
        assert SandboxManager(NoopProvider()).get("nope") is None


# ---------------------------------------------------------------------------
# Backend failures
# ---------------------------------------------------------------------------


def _failing_provider(**failures) -> NoopProvider:
    provider = NoopProvider()
    for method, error in failures.items():
        setattr(provider, method, AsyncMock(side_effect=error))
    return provider


class TestBackendFailures:
    @pytest.mark.asyncio
    async def test_create_failure_raises_and_registers_nothing(self) -> None:
        manager = SandboxManager(_failing_provider(create=SandboxError("quota exceeded")))
        with pytest.raises(SandboxError):
            await manager.create("s1")
        assert manager.get("s1") is None

    @pytest.mark.asyncio
    async def test_checkpoint_failure_propagates(self) -> None:
        manager = SandboxManager(_failing_provider(checkpoint=SandboxError("daemon gone")))
        await manager.create("s1")
        with pytest.raises(SandboxError, match="daemon gone"):
            await manager.checkpoint("s1")

    @pytest.mark.asyncio
    async def test_destroy_failure_still_drops_entry(self) -> None:
        manager = SandboxManager(_failing_provider(destroy=SandboxError("502 Bad Gateway")))
        await manager.create("s1")
        with pytest.raises(SandboxError):
            await manager.destroy("s1")
        assert manager.get("s1") is None
        await manager.destroy("s1")

    @pytest.mark.asyncio
    async def test_sessions_are_independent(self) -> None:
        manager = SandboxManager(NoopProvider())
        await manager.create("a")
        await manager.create("b")
        await manager.destroy("a")
        assert manager.get("a") is None
        assert manager.get("b") is not None
