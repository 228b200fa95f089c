"""Sandbox provider contract shared by every isolation backend.

A provider allocates one isolated environment per agent session and can
snapshot (checkpoint) and roll it back (restore). Provider handles and
checkpoint tokens are opaque strings, meaningful only to the provider that
issued them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Literal

ProviderName = Literal["microvm", "container", "none"]


class SandboxError(Exception):
    """A sandbox backend call failed (network, daemon, non-success response)."""


class SandboxNotFoundError(SandboxError):
    """No sandbox is registered for the given session."""


class SandboxConfigError(SandboxError):
    """A provider was selected without the configuration it requires."""


@dataclass
class SandboxSession:
    """Registry entry for one live sandbox. Process memory only."""

    session_id: str
    provider: ProviderName
    provider_id: str
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SandboxProvider(ABC):
    """create / checkpoint / restore / destroy against one backend."""

    name: ProviderName

    @abstractmethod
    async def create(self, session_id: str) -> str:
        """Allocate an environment for *session_id*; return its provider id."""

    @abstractmethod
    async def checkpoint(self, provider_id: str) -> str:
        """Snapshot the environment; return an opaque checkpoint token."""

    @abstractmethod
    async def restore(self, provider_id: str, checkpoint_token: str) -> None:
        """Roll the environment back to *checkpoint_token*."""

    @abstractmethod
    async def destroy(self, provider_id: str) -> None:
        """Tear the environment down. Already-gone environments are not an error."""

    async def aclose(self) -> None:
        """Release client resources held by the provider."""


def short_id(session_id: str) -> str:
    """First 8 characters of a session id, used in backend resource names."""
    return session_id.replace("-", "")[:8]
