"""Workspace → engine credential lookup (BYOK with a process-wide fallback)."""

from __future__ import annotations

import logging

from app.config import settings
from app.sessions.repository import WorkspaceRepository

logger = logging.getLogger(__name__)


class CredentialResolver:
    """Resolve the engine API key a workspace's runs should use.

    A workspace-stored key wins; otherwise the default key is returned.
    Stored keys are used as-is, decryption belongs to the key-management layer.
    """

    def __init__(self, workspaces: WorkspaceRepository | None = None, default_key: str | None = None) -> None:
        self.workspaces = workspaces or WorkspaceRepository()
        self.default_key = default_key if default_key is not None else settings.anthropic_api_key

    def resolve(self, workspace_id: str) -> str:
        try:
            workspace = self.workspaces.find(workspace_id)
        except Exception as e:
            logger.warning("Credential lookup failed for workspace %s, using default: %s", workspace_id, e)
            return self.default_key
        if workspace is not None and workspace.engine_api_key:
            return workspace.engine_api_key
        return self.default_key
