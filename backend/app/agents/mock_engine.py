"""Mock agent engine for testing without the Claude Code CLI.

Plays back scripted SDK messages. Tool steps go through the PreToolUse /
PostToolUse hooks registered on the options, the way the real engine does,
so policy blocks can be exercised end to end.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

MOCK_MODEL = "mock-model"


@dataclass
class ToolStep:
    """The engine decides to call a tool; hooks may deny it."""

    name: str
    input: dict[str, Any] = field(default_factory=dict)
    result: Any = "ok"
    id: str = field(default_factory=lambda: f"toolu_{uuid4().hex[:12]}")


def system_init(session_id: str = "mock-session") -> SystemMessage:
    return SystemMessage(subtype="init", data={"session_id": session_id})


def assistant_text(text: str) -> AssistantMessage:
    return AssistantMessage(content=[TextBlock(text=text)], model=MOCK_MODEL)


def result_message(
    session_id: str = "mock-session",
    input_tokens: int = 100,
    output_tokens: int = 50,
    num_turns: int = 1,
) -> ResultMessage:
    return ResultMessage(
        subtype="success",
        duration_ms=10,
        duration_api_ms=8,
        is_error=False,
        num_turns=num_turns,
        session_id=session_id,
        usage={"input_tokens": input_tokens, "output_tokens": output_tokens},
    )


def reply(text: str, session_id: str = "mock-session") -> list[Any]:
    """Script for a plain one-message answer."""
    return [system_init(session_id), assistant_text(text), result_message(session_id)]


class MockEngine:
    """Scripted engine. Each call plays the next script; the last one repeats.

    Usage:
        engine = MockEngine(reply("first"), reply("second"))
        runner = AgentRunner(engine=engine)
        ...
        engine.call_log[0]["prompt"]

    Script items: SDK messages (yielded as-is), ToolStep (hooked tool call),
    or an Exception instance (raised at that point).
    """

    def __init__(self, *scripts: list[Any]) -> None:
        self.scripts: list[list[Any]] = list(scripts) or [reply("")]
        self.call_log: list[dict[str, Any]] = []

    def __call__(self, prompt: str, options: ClaudeAgentOptions) -> AsyncIterator[Any]:
        index = min(len(self.call_log), len(self.scripts) - 1)
        self.call_log.append({"prompt": prompt, "options": options})
        return self._play(self.scripts[index], options)

    async def _play(self, script: list[Any], options: ClaudeAgentOptions) -> AsyncIterator[Any]:
        for item in script:
            if isinstance(item, BaseException):
                raise item
            if isinstance(item, ToolStep):
                async for message in self._tool_step(item, options):
                    yield message
                continue
            yield item

    async def _tool_step(self, step: ToolStep, options: ClaudeAgentOptions) -> AsyncIterator[Any]:
        yield AssistantMessage(
            content=[ToolUseBlock(id=step.id, name=step.name, input=step.input)],
            model=MOCK_MODEL,
        )
        hook_input = {"hook_event_name": "PreToolUse", "tool_name": step.name, "tool_input": step.input}
        for output in await _call_hooks(options, "PreToolUse", hook_input, step.id):
            specific = output.get("hookSpecificOutput") or {}
            if specific.get("permissionDecision") == "deny":
                yield UserMessage(content=[ToolResultBlock(
                    tool_use_id=step.id,
                    content=specific.get("permissionDecisionReason", ""),
                    is_error=True,
                )])
                return

        await _call_hooks(options, "PostToolUse", {
            "hook_event_name": "PostToolUse",
            "tool_name": step.name,
            "tool_input": step.input,
            "tool_response": step.result,
        }, step.id)
        yield UserMessage(content=[ToolResultBlock(tool_use_id=step.id, content=step.result)])


async def _call_hooks(
    options: ClaudeAgentOptions,
    event_name: str,
    hook_input: dict[str, Any],
    tool_use_id: str,
) -> list[dict[str, Any]]:
    outputs: list[dict[str, Any]] = []
    for matcher in (options.hooks or {}).get(event_name, []):
        for hook in matcher.hooks:
            outputs.append(await hook(hook_input, tool_use_id, {"signal": None}))
    return outputs
