"""Tests for the tool-use hook chain and the built-in hooks."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from app.agents.hooks import (
    HookChain,
    HookDecision,
    PostToolUseContext,
    PreToolUseContext,
    audit_log_hook,
    confirmation_hook,
    destructive_command_blocker,
    find_destructive_pattern,
)


def _bash(command: str) -> PreToolUseContext:
    return PreToolUseContext(tool_name="Bash", tool_input={"command": command})


# ---------------------------------------------------------------------------
# Destructive command blocker
# ---------------------------------------------------------------------------


class TestDestructiveCommandBlocker:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", [
        "rm -rf /data",
        "cd /tmp && rm -fr build",
        "rm -v -rf /data",
        "rm -i -r /data",
        "rm -R /data",
        "rm --recursive --force /data",
        "rm /data -f",
        "sqlite3 app.db 'drop table users'",
        "psql -c 'DELETE FROM links'",
        "TRUNCATE TABLE sessions",
        "mkfs.ext4 /dev/sda1",
        "dd if=/dev/zero of=/dev/sda",
    ])
    async def test_blocks_destructive_commands(self, command: str) -> None:
        decision = await HookChain(pre=[destructive_command_blocker()]).before_tool_use(_bash(command))
        assert decision.blocked
        assert command in decision.reason
        assert "Destructive command blocked" in decision.reason

    @pytest.mark.asyncio
    @pytest.mark.parametrize("command", [
        "ls -la",
        "cat README.md",
        "git status",
        "rm notes.txt",
        "rm -v notes.txt",
        "rm notes.txt; ls -f",
        "rm draft-final.md",
    ])
    async def test_allows_benign_commands(self, command: str) -> None:
        decision = await HookChain(pre=[destructive_command_blocker()]).before_tool_use(_bash(command))
        assert not decision.blocked

    @pytest.mark.asyncio
    async def test_ignores_non_shell_tools(self) -> None:
        ctx = PreToolUseContext(tool_name="Write", tool_input={"content": "rm -rf /"})
        decision = await HookChain(pre=[destructive_command_blocker()]).before_tool_use(ctx)
        assert not decision.blocked

    @pytest.mark.asyncio
    async def test_extra_input_fields_do_not_hide_command(self) -> None:
        ctx = PreToolUseContext(
            tool_name="Bash",
            tool_input={"description": "cleanup", "timeout": 30, "command": "RM -RF /var/lib"},
        )
        decision = await HookChain(pre=[destructive_command_blocker()]).before_tool_use(ctx)
        assert decision.blocked

    def test_find_pattern_returns_matching_pattern(self) -> None:
        assert find_destructive_pattern("echo hi; DROP   TABLE x") == r"DROP\s+TABLE"
        assert find_destructive_pattern("echo hi") is None


# ---------------------------------------------------------------------------
# Chain semantics
# ---------------------------------------------------------------------------


class TestHookChain:
    @pytest.mark.asyncio
    async def test_empty_chain_allows(self) -> None:
        chain = HookChain()
        assert not chain
        assert not (await chain.before_tool_use(_bash("ls"))).blocked

    @pytest.mark.asyncio
    async def test_first_block_short_circuits(self) -> None:
        later = AsyncMock(return_value=None)
        chain = HookChain(pre=[
            AsyncMock(return_value=None),
            AsyncMock(return_value=HookDecision.block("first")),
            later,
        ])
        decision = await chain.before_tool_use(_bash("ls"))
        assert decision.reason == "first"
        later.assert_not_called()

    @pytest.mark.asyncio
    async def test_pre_hooks_run_in_registration_order(self) -> None:
        order: list[str] = []

        def _recording(name: str):
            async def _hook(ctx):
                order.append(name)
            return _hook

        chain = HookChain(pre=[_recording("a"), _recording("b")]).extend(HookChain(pre=[_recording("c")]))
        await chain.before_tool_use(_bash("ls"))
        assert order == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_raising_pre_hook_blocks(self) -> None:
        chain = HookChain(pre=[AsyncMock(side_effect=RuntimeError("policy service down"))])
        decision = await chain.before_tool_use(_bash("ls"))
        assert decision.blocked
        assert "policy service down" in decision.reason

    @pytest.mark.asyncio
    async def test_post_hook_failure_is_swallowed(self) -> None:
        second = AsyncMock()
        chain = HookChain(post=[AsyncMock(side_effect=RuntimeError("disk full")), second])
        await chain.after_tool_use(PostToolUseContext(tool_name="Bash", tool_result="ok"))
        second.assert_awaited_once()

    def test_extend_does_not_mutate(self) -> None:
        base = HookChain(pre=[destructive_command_blocker()])
        combined = base.extend(HookChain(pre=[AsyncMock()]))
        assert len(base.pre) == 1
        assert len(combined.pre) == 2


# ---------------------------------------------------------------------------
# Audit / confirmation hooks
# ---------------------------------------------------------------------------


class TestAuditAndConfirmation:
    @pytest.mark.asyncio
    async def test_audit_hook_records_call(self) -> None:
        on_log = AsyncMock()
        chain = HookChain(post=[audit_log_hook(on_log)])
        await chain.after_tool_use(PostToolUseContext(
            tool_name="Read", tool_input={"file_path": "a.txt"}, tool_result="contents",
        ))
        entry = on_log.await_args.args[0]
        assert entry["tool_name"] == "Read"
        assert entry["tool_input"] == {"file_path": "a.txt"}
        assert entry["result"] == "contents"
        assert entry["timestamp"] is not None

    @pytest.mark.asyncio
    async def test_confirmation_denied_blocks(self) -> None:
        chain = HookChain(pre=[confirmation_hook(AsyncMock(return_value=False), ["Write"])])
        decision = await chain.before_tool_use(PreToolUseContext(tool_name="Write"))
        assert decision.blocked
        assert decision.reason == "User denied permission for Write"

    @pytest.mark.asyncio
    async def test_confirmation_only_guards_listed_tools(self) -> None:
        confirm = AsyncMock(return_value=False)
        chain = HookChain(pre=[confirmation_hook(confirm, ["Write"])])
        decision = await chain.before_tool_use(PreToolUseContext(tool_name="Read"))
        assert not decision.blocked
        confirm.assert_not_called()
