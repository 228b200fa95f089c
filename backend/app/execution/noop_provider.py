"""No-op sandbox for development machines without isolation tooling."""

from __future__ import annotations

import time

from app.execution.base import SandboxProvider


class NoopProvider(SandboxProvider):
    name = "none"

    async def create(self, session_id: str) -> str:
        return f"noop-{session_id}"

    async def checkpoint(self, provider_id: str) -> str:
        return f"noop-checkpoint-{int(time.time() * 1000)}"

    async def restore(self, provider_id: str, checkpoint_token: str) -> None:
        return None

    async def destroy(self, provider_id: str) -> None:
        return None
