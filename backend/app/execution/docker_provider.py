"""Docker sandbox provider: one long-lived container per agent session.

Drives the local Docker daemon through the docker CLI. Checkpoint/restore
use CRIU-backed `docker checkpoint`, which needs the daemon's experimental
features enabled.

Constraints applied to every sandbox container:
  --memory 512m       RAM cap
  --cpus 1.0          CPU cap
  --security-opt no-new-privileges  prevent privilege escalation
  --label             agent-editor.session=<session id> for cleanup tooling

Image selection (config.docker_sandbox_image):
  - Default: agent-editor-sandbox:latest
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import time

from app.config import settings
from app.execution.base import SandboxError, SandboxProvider, short_id

logger = logging.getLogger(__name__)

_NOT_FOUND_MARKERS = ("No such container", "not found")
_STOP_GRACE_SECONDS = 5


class DockerProvider(SandboxProvider):
    """Container-backed sandboxes via the docker CLI.

    Usage:
        provider = DockerProvider()
        container_id = await provider.create(session_id)
        token = await provider.checkpoint(container_id)
        await provider.restore(container_id, token)
        await provider.destroy(container_id)
    """

    name = "container"

    def __init__(
        self,
        image: str | None = None,
        memory: str | None = None,
        cpus: str | None = None,
        timeout: int | None = None,
    ) -> None:
        self._image = image or settings.docker_sandbox_image
        self._memory = memory or settings.docker_memory_limit
        self._cpus = cpus or settings.docker_cpu_limit
        self._timeout = timeout or settings.docker_command_timeout

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def is_available(self) -> bool:
        """Return True if the docker CLI is on PATH."""
        return shutil.which("docker") is not None

    async def create(self, session_id: str) -> str:
        stdout = await self._docker(*self._build_run_cmd(session_id))
        container_id = stdout.strip()
        if not container_id:
            raise SandboxError("docker run returned no container id")
        logger.info("Sandbox container %s started for session %s", container_id[:12], session_id)
        return container_id

    async def checkpoint(self, provider_id: str) -> str:
        checkpoint_id = f"cp-{int(time.time() * 1000)}"
        await self._docker("checkpoint", "create", "--leave-running", provider_id, checkpoint_id)
        return checkpoint_id

    async def restore(self, provider_id: str, checkpoint_token: str) -> None:
        # A container must be stopped before it can start from a checkpoint.
        try:
            await self._docker("stop", "-t", str(_STOP_GRACE_SECONDS), provider_id)
        except SandboxError as e:
            logger.debug("docker stop before restore ignored: %s", e)
        await self._docker("start", "--checkpoint", checkpoint_token, provider_id)

    async def destroy(self, provider_id: str) -> None:
        try:
            await self._docker("stop", "-t", str(_STOP_GRACE_SECONDS), provider_id)
        except SandboxError:
            pass  # Already stopped
        try:
            await self._docker("rm", "-f", provider_id)
        except SandboxError as e:
            if any(marker in str(e) for marker in _NOT_FOUND_MARKERS):
                logger.debug("Container %s already removed", provider_id[:12])
                return
            raise

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _docker(self, *args: str) -> str:
        """Run one docker CLI command; return stdout or raise SandboxError."""
        if not self.is_available():
            raise SandboxError("docker CLI not found. Install Docker and start the daemon.")

        proc = await asyncio.create_subprocess_exec(
            "docker", *args,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout_raw, stderr_raw = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise SandboxError(f"docker {args[0]} timed out after {self._timeout}s")

        if proc.returncode != 0:
            stderr = stderr_raw.decode("utf-8", errors="replace").strip()
            raise SandboxError(f"docker {args[0]} failed (exit {proc.returncode}): {stderr}")
        return stdout_raw.decode("utf-8", errors="replace")

    def _build_run_cmd(self, session_id: str) -> list[str]:
        """Build the docker run argument list (without the leading 'docker')."""
        return [
            "run", "-d",
            "--name", f"agent-session-{short_id(session_id)}",
            "--label", f"agent-editor.session={session_id}",
            "--memory", self._memory,
            "--cpus", self._cpus,
            "--security-opt", "no-new-privileges",
            self._image,
        ]
