"""Sprites microVM provider: Firecracker sandboxes behind a managed API.

Each agent session gets one sprite named agent-<session prefix>. Sprites
keep their filesystem between turns and support native checkpoints.

Auth: Bearer token (SPRITES_TOKEN).
Docs: https://sprites.dev/api
"""

from __future__ import annotations

import logging

import httpx

from app.config import settings
from app.execution.base import SandboxConfigError, SandboxError, SandboxProvider, short_id

logger = logging.getLogger(__name__)

_HEADERS = {"Accept": "application/json"}


class SpritesProvider(SandboxProvider):
    """Async client for the Sprites API.

    Usage:
        provider = SpritesProvider(token=settings.sprites_token)
        sprite = await provider.create(session_id)
        checkpoint_id = await provider.checkpoint(sprite)
    """

    name = "microvm"

    def __init__(
        self,
        token: str,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not token:
            raise SandboxConfigError("sprites token is required for the microVM provider")
        self._client = httpx.AsyncClient(
            base_url=(base_url or settings.sprites_api_url).rstrip("/"),
            headers={**_HEADERS, "Authorization": f"Bearer {token}"},
            timeout=timeout or settings.sandbox_request_timeout,
            transport=transport,
        )

    async def create(self, session_id: str) -> str:
        sprite_name = f"agent-{short_id(session_id)}"
        await self._request("POST", "/v1/sprites", action="create sprite", json={"name": sprite_name})
        logger.info("Sprite %s created for session %s", sprite_name, session_id)
        return sprite_name

    async def checkpoint(self, provider_id: str) -> str:
        resp = await self._request("POST", f"/v1/sprites/{provider_id}/checkpoints", action="checkpoint sprite")
        checkpoint_id = resp.json().get("id")
        if not checkpoint_id:
            raise SandboxError("Failed to checkpoint sprite: response carried no checkpoint id")
        return str(checkpoint_id)

    async def restore(self, provider_id: str, checkpoint_token: str) -> None:
        await self._request(
            "POST",
            f"/v1/sprites/{provider_id}/checkpoints/{checkpoint_token}/restore",
            action="restore sprite",
        )

    async def destroy(self, provider_id: str) -> None:
        await self._request("DELETE", f"/v1/sprites/{provider_id}", action="destroy sprite", allow_not_found=True)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        action: str,
        allow_not_found: bool = False,
        **kwargs,
    ) -> httpx.Response:
        try:
            resp = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise SandboxError(f"Failed to {action}: {e}") from e
        if allow_not_found and resp.status_code == 404:
            logger.debug("%s %s: already gone", method, path)
            return resp
        if resp.is_error:
            raise SandboxError(f"Failed to {action}: {resp.status_code} {resp.reason_phrase}")
        return resp
