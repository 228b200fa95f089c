"""AgentService: the runner every API path goes through.

Always installs the destructive-command blocker ahead of any caller hooks.
"""

from __future__ import annotations

from collections.abc import AsyncIterator

from app.agents.hooks import HookChain, destructive_command_blocker
from app.agents.runner import AgentRunner, AgentRunOptions
from app.models.events import StreamEvent


class AgentService:
    def __init__(self, runner: AgentRunner | None = None) -> None:
        self.runner = runner or AgentRunner()
        self._policy = HookChain(pre=[destructive_command_blocker()])

    def with_policy(self, options: AgentRunOptions) -> AgentRunOptions:
        return options.replace(hooks=self._policy.extend(options.hooks))

    def run(self, options: AgentRunOptions) -> AsyncIterator[StreamEvent]:
        return self.runner.run(self.with_policy(options))
