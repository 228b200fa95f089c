"""Tests for AgentService: the destructive-command policy is always on."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from app.agents.hooks import HookChain
from app.agents.mock_engine import MockEngine, ToolStep
from app.agents.runner import AgentRunner, AgentRunOptions
from app.agents.service import AgentService
from app.models.events import ToolResultEvent


@pytest.mark.asyncio
async def test_blocks_destructive_command_without_caller_hooks():
    engine = MockEngine([ToolStep(name="Bash", input={"command": "rm -rf /data"})])
    service = AgentService(AgentRunner(engine=engine))
    events = [e async for e in service.run(AgentRunOptions(prompt="clean up", credential="k"))]

    result = next(e for e in events if isinstance(e, ToolResultEvent))
    assert result.result["blocked"] is True


@pytest.mark.asyncio
async def test_policy_runs_before_caller_hooks():
    caller_hook = AsyncMock(return_value=None)
    engine = MockEngine([ToolStep(name="Bash", input={"command": "DROP TABLE links"})])
    service = AgentService(AgentRunner(engine=engine))
    options = AgentRunOptions(prompt="x", credential="k", hooks=HookChain(pre=[caller_hook]))
    [e async for e in service.run(options)]

    caller_hook.assert_not_called()


@pytest.mark.asyncio
async def test_benign_command_reaches_caller_hooks():
    caller_hook = AsyncMock(return_value=None)
    engine = MockEngine([ToolStep(name="Bash", input={"command": "ls -la"}, result="total 0")])
    service = AgentService(AgentRunner(engine=engine))
    options = AgentRunOptions(prompt="x", credential="k", hooks=HookChain(pre=[caller_hook]))
    events = [e async for e in service.run(options)]

    caller_hook.assert_awaited_once()
    result = next(e for e in events if isinstance(e, ToolResultEvent))
    assert result.result == "total 0"


def test_with_policy_keeps_original_options():
    service = AgentService(AgentRunner(engine=MockEngine()))
    options = AgentRunOptions(prompt="x", credential="k")
    wrapped = service.with_policy(options)
    assert options.hooks is None
    assert len(wrapped.hooks.pre) == 1
