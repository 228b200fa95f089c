"""SandboxManager: lifecycle of per-session sandboxes across backends.

The backend is chosen once, at construction, from configuration:
  - SPRITES_TOKEN set          → microVM (Sprites)
  - ENVIRONMENT=development    → none (no-op)
  - otherwise                  → container (Docker)

Live sandboxes are tracked in an in-memory registry keyed by session id.
The registry is not persisted: after a process restart a session's recorded
sandbox_id can no longer be addressed until a new sandbox is created.

Callers must not run checkpoint/restore/destroy concurrently for the same
session id. Different sessions are independent.
"""

from __future__ import annotations

import logging

from app.config import Settings, settings as default_settings
from app.execution.base import SandboxNotFoundError, SandboxProvider, SandboxSession
from app.execution.docker_provider import DockerProvider
from app.execution.noop_provider import NoopProvider
from app.execution.sprites_provider import SpritesProvider

logger = logging.getLogger(__name__)


def select_provider(config: Settings) -> SandboxProvider:
    """Pick the sandbox backend for this process from static configuration."""
    if config.sprites_token:
        return SpritesProvider(token=config.sprites_token, base_url=config.sprites_api_url)
    if config.environment == "development":
        return NoopProvider()
    return DockerProvider()


class SandboxManager:
    """create / checkpoint / restore / destroy / get, keyed by session id.

    Usage:
        manager = SandboxManager.from_settings()
        sandbox = await manager.create(session_id)
        token = await manager.checkpoint(session_id)
        await manager.restore(session_id, token)
        await manager.destroy(session_id)
    """

    def __init__(self, provider: SandboxProvider) -> None:
        self.provider = provider
        self._sessions: dict[str, SandboxSession] = {}

    @classmethod
    def from_settings(cls, config: Settings | None = None) -> SandboxManager:
        provider = select_provider(config or default_settings)
        logger.info("Sandbox provider: %s", provider.name)
        return cls(provider)

    @property
    def provider_name(self) -> str:
        return self.provider.name

    async def create(self, session_id: str) -> SandboxSession:
        """Allocate a sandbox. No dedup: callers create at most once per live session."""
        provider_id = await self.provider.create(session_id)
        sandbox = SandboxSession(session_id=session_id, provider=self.provider.name, provider_id=provider_id)
        self._sessions[session_id] = sandbox
        return sandbox

    async def checkpoint(self, session_id: str) -> str:
        """Return an opaque checkpoint token. Persisting it is the caller's job."""
        sandbox = self._require(session_id)
        token = await self.provider.checkpoint(sandbox.provider_id)
        logger.info("Checkpoint %s taken for session %s", token, session_id)
        return token

    async def restore(self, session_id: str, checkpoint_token: str) -> None:
        sandbox = self._require(session_id)
        await self.provider.restore(sandbox.provider_id, checkpoint_token)
        logger.info("Session %s restored to %s", session_id, checkpoint_token)

    async def destroy(self, session_id: str) -> None:
        """Tear down the session's sandbox. Unknown sessions are a no-op.

        The registry entry is dropped even if the backend call fails.
        """
        sandbox = self._sessions.get(session_id)
        if sandbox is None:
            return
        try:
            await self.provider.destroy(sandbox.provider_id)
        finally:
            self._sessions.pop(session_id, None)

    def get(self, session_id: str) -> SandboxSession | None:
        return self._sessions.get(session_id)

    async def aclose(self) -> None:
        await self.provider.aclose()

    def _require(self, session_id: str) -> SandboxSession:
        sandbox = self._sessions.get(session_id)
        if sandbox is None:
            raise SandboxNotFoundError(f"No sandbox session for {session_id}")
        return sandbox
