"""Tool-use hooks: ordered interceptors around every tool the engine runs.

Pre-hooks run in registration order right before a tool executes. Each
returns None (allow) or a HookDecision; the first "block" wins and the tool
does not run. Post-hooks observe finished tool calls and can never abort a
run: their failures are logged and dropped.

Usage:
    chain = HookChain(pre=[destructive_command_blocker()])
    decision = await chain.before_tool_use(
        PreToolUseContext(tool_name="Bash", tool_input={"command": "rm -rf /"})
    )
    decision.blocked  # True
"""

from __future__ import annotations

import logging
import re
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Literal

logger = logging.getLogger(__name__)

SHELL_TOOLS = frozenset({"Bash"})

DESTRUCTIVE_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(p, re.IGNORECASE)
    for p in (
        r"\brm\s+(?:[^\s;|&]+\s+)*(?:-[a-z]*[rf][a-z]*|--recursive|--force)(?=[\s;|&]|$)",
        r"DROP\s+TABLE",
        r"DELETE\s+FROM",
        r"TRUNCATE\s+TABLE",
        r"format\s+[a-z]:",
        r"mkfs",
        r"dd\s+if=",
    )
)


@dataclass
class PreToolUseContext:
    tool_name: str
    tool_input: dict[str, Any] = field(default_factory=dict)
    tool_use_id: str | None = None


@dataclass
class PostToolUseContext:
    tool_name: str
    tool_input: dict[str, Any] = field(default_factory=dict)
    tool_result: Any = None
    tool_use_id: str | None = None


@dataclass(frozen=True)
class HookDecision:
    decision: Literal["allow", "block"] = "allow"
    reason: str | None = None

    @property
    def blocked(self) -> bool:
        return self.decision == "block"

    @classmethod
    def block(cls, reason: str) -> HookDecision:
        return cls(decision="block", reason=reason)


ALLOW = HookDecision()

PreToolUseHook = Callable[[PreToolUseContext], Awaitable["HookDecision | None"]]
PostToolUseHook = Callable[[PostToolUseContext], Awaitable[None]]


class HookChain:
    """Ordered pre/post tool-use hooks. Pure policy, no I/O of its own."""

    def __init__(
        self,
        pre: Iterable[PreToolUseHook] | None = None,
        post: Iterable[PostToolUseHook] | None = None,
    ) -> None:
        self.pre: list[PreToolUseHook] = list(pre or [])
        self.post: list[PostToolUseHook] = list(post or [])

    def __bool__(self) -> bool:
        return bool(self.pre or self.post)

    def extend(self, other: HookChain | None) -> HookChain:
        """Return a new chain running this chain's hooks first, then *other*'s."""
        if other is None:
            return HookChain(self.pre, self.post)
        return HookChain(self.pre + other.pre, self.post + other.post)

    async def before_tool_use(self, ctx: PreToolUseContext) -> HookDecision:
        for hook in self.pre:
            try:
                decision = await hook(ctx)
            except Exception as e:
                # Fail closed: a broken policy must not let the tool through.
                logger.warning("Pre-tool hook %r failed on %s: %s", hook, ctx.tool_name, e)
                return HookDecision.block(f"Tool use hook failed: {e}")
            if decision is not None and decision.blocked:
                logger.info("Tool %s blocked: %s", ctx.tool_name, decision.reason)
                return decision
        return ALLOW

    async def after_tool_use(self, ctx: PostToolUseContext) -> None:
        for hook in self.post:
            try:
                await hook(ctx)
            except Exception as e:
                logger.warning("Post-tool hook %r failed on %s (ignored): %s", hook, ctx.tool_name, e)


# ---------------------------------------------------------------------------
# Built-in hooks
# ---------------------------------------------------------------------------


def find_destructive_pattern(command: str) -> str | None:
    """Return the first destructive pattern matching *command*, if any."""
    for pattern in DESTRUCTIVE_PATTERNS:
        if pattern.search(command):
            return pattern.pattern
    return None


def destructive_command_blocker() -> PreToolUseHook:
    """Block shell commands that delete data (rm -rf, DROP TABLE, mkfs, dd...)."""

    async def _hook(ctx: PreToolUseContext) -> HookDecision | None:
        if ctx.tool_name not in SHELL_TOOLS:
            return None
        command = str(ctx.tool_input.get("command") or "")
        if find_destructive_pattern(command) is None:
            return None
        return HookDecision.block(
            f"Destructive command blocked: {command}. "
            "Please confirm with the user before running destructive operations."
        )

    return _hook


AuditEntry = dict[str, Any]


def audit_log_hook(on_log: Callable[[AuditEntry], Awaitable[None]]) -> PostToolUseHook:
    """Record every finished tool call through *on_log*."""

    async def _hook(ctx: PostToolUseContext) -> None:
        await on_log({
            "tool_name": ctx.tool_name,
            "tool_input": ctx.tool_input,
            "result": ctx.tool_result,
            "timestamp": datetime.now(timezone.utc),
        })

    return _hook


def confirmation_hook(
    confirm: Callable[[PreToolUseContext], Awaitable[bool]],
    tool_names: Iterable[str],
) -> PreToolUseHook:
    """Ask *confirm* before running any of *tool_names*; False blocks."""
    guarded = frozenset(tool_names)

    async def _hook(ctx: PreToolUseContext) -> HookDecision | None:
        if ctx.tool_name not in guarded:
            return None
        if await confirm(ctx):
            return None
        return HookDecision.block(f"User denied permission for {ctx.tool_name}")

    return _hook
