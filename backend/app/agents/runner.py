"""AgentRunner: drives the Claude Agent SDK and normalizes its output.

The SDK yields loosely-typed engine messages (system / assistant / user /
result ...). AgentRunner.run() turns each of them into exactly one canonical
StreamEvent, or drops it when the kind is not part of the protocol, and
always finishes with exactly one DoneEvent or ErrorEvent.

Design decisions:
- Pull-based: run() is an async generator, so the engine is only read when
  the consumer asks for the next event. Closing the generator closes the
  engine stream.
- Nothing escapes: any exception raised while consuming the engine becomes
  a terminal ErrorEvent, classified retryable on transient signatures.
- The engine is injectable (default: ClaudeSDKClient) so tests can script
  engine output with MockEngine.
"""

from __future__ import annotations

import dataclasses
import logging
import re
from collections.abc import AsyncIterator, Callable
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any

from claude_agent_sdk import (
    AssistantMessage,
    ClaudeAgentOptions,
    ClaudeSDKClient,
    HookMatcher,
    ResultMessage,
    SystemMessage,
    TextBlock,
    ToolResultBlock,
    ToolUseBlock,
    UserMessage,
)

from app.agents.hooks import HookChain, PostToolUseContext, PreToolUseContext
from app.config import settings
from app.models.events import (
    DoneEvent,
    ErrorEvent,
    MessageEvent,
    StreamEvent,
    SystemEvent,
    TextContent,
    ToolCallEvent,
    ToolResultEvent,
    ToolUseContent,
)

logger = logging.getLogger(__name__)

Engine = Callable[[str, ClaudeAgentOptions], AsyncIterator[Any]]

# Rate limiting, overload, timeout
_TRANSIENT_ERROR = re.compile(r"rate[_\s-]?limit|overloaded|timeout|timed out", re.IGNORECASE)


async def claude_engine(prompt: str, options: ClaudeAgentOptions) -> AsyncIterator[Any]:
    """Default engine: one query through ClaudeSDKClient, until its result."""
    async with ClaudeSDKClient(options=options) as client:
        await client.query(prompt)
        async for message in client.receive_response():
            yield message


@dataclass
class AgentRunOptions:
    """Everything one run needs. resumption_token continues a prior conversation."""

    prompt: str
    credential: str
    resumption_token: str | None = None
    system_prompt: str | None = None
    allowed_tools: list[str] | None = None
    max_turns: int | None = None
    hooks: HookChain | None = None

    def replace(self, **changes: Any) -> AgentRunOptions:
        return dataclasses.replace(self, **changes)


def is_retryable(message: str) -> bool:
    """True if an engine error message looks like a transient failure."""
    return bool(_TRANSIENT_ERROR.search(message))


@dataclass
class RunState:
    """Per-run bookkeeping shared by the hook bridge and the normalizer."""

    session_token: str | None = None
    tokens_used: int = 0
    tool_names: dict[str, str] = field(default_factory=dict)
    blocked: dict[str, str] = field(default_factory=dict)  # tool_use_id -> reason


class _HookBridge:
    """Adapts a HookChain to the SDK's PreToolUse / PostToolUse callbacks."""

    def __init__(self, chain: HookChain, state: RunState) -> None:
        self._chain = chain
        self._state = state

    def sdk_hooks(self) -> dict[str, list[HookMatcher]]:
        return {
            "PreToolUse": [HookMatcher(matcher=None, hooks=[self._pre_tool_use])],
            "PostToolUse": [HookMatcher(matcher=None, hooks=[self._post_tool_use])],
        }

    async def _pre_tool_use(self, input_data: dict[str, Any], tool_use_id: str | None, context: Any) -> dict[str, Any]:
        ctx = PreToolUseContext(
            tool_name=input_data.get("tool_name", ""),
            tool_input=input_data.get("tool_input") or {},
            tool_use_id=tool_use_id,
        )
        decision = await self._chain.before_tool_use(ctx)
        if not decision.blocked:
            return {}
        reason = decision.reason or "Blocked by tool use policy"
        if tool_use_id:
            self._state.blocked[tool_use_id] = reason
        return {
            "hookSpecificOutput": {
                "hookEventName": "PreToolUse",
                "permissionDecision": "deny",
                "permissionDecisionReason": reason,
            }
        }

    async def _post_tool_use(self, input_data: dict[str, Any], tool_use_id: str | None, context: Any) -> dict[str, Any]:
        await self._chain.after_tool_use(PostToolUseContext(
            tool_name=input_data.get("tool_name", ""),
            tool_input=input_data.get("tool_input") or {},
            tool_result=input_data.get("tool_response"),
            tool_use_id=tool_use_id,
        ))
        return {}


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _tool_result(block: ToolResultBlock, state: RunState) -> tuple[str, Any]:
    name = state.tool_names.get(block.tool_use_id, "")
    reason = state.blocked.get(block.tool_use_id)
    if reason is not None:
        return name, {"blocked": True, "reason": reason}
    if block.is_error:
        return name, {"error": block.content}
    return name, block.content


def normalize_message(message: Any, state: RunState | None = None) -> StreamEvent | None:
    """Translate one raw engine message into one canonical event, or None.

    Unrecognized message kinds (result summaries, partial stream events,
    unknown future types) are dropped rather than guessed at.
    """
    state = state if state is not None else RunState()

    if isinstance(message, SystemMessage):
        token = (message.data or {}).get("session_id")
        return SystemEvent(subtype=message.subtype, session_id=str(token) if token else None)

    if isinstance(message, AssistantMessage):
        content: list[TextContent | ToolUseContent] = []
        for block in message.content:
            if isinstance(block, TextBlock):
                content.append(TextContent(text=block.text))
            elif isinstance(block, ToolUseBlock):
                state.tool_names[block.id] = block.name
                content.append(ToolUseContent(id=block.id, name=block.name, input=block.input))
        if len(content) == 1 and isinstance(content[0], ToolUseContent):
            call = content[0]
            return ToolCallEvent(tool_name=call.name, tool_input=dict(call.input or {}), id=call.id)
        return MessageEvent(role="assistant", content=content)

    if isinstance(message, UserMessage):
        if isinstance(message.content, str):
            return MessageEvent(role="user", content=[TextContent(text=message.content)])
        results = [b for b in message.content if isinstance(b, ToolResultBlock)]
        if len(results) == 1:
            name, result = _tool_result(results[0], state)
            return ToolResultEvent(tool_name=name, result=result, id=results[0].tool_use_id)
        if results:
            pairs = [_tool_result(b, state) for b in results]
            return ToolResultEvent(
                tool_name=",".join(name for name, _ in pairs),
                result=[
                    {"id": b.tool_use_id, "tool_name": name, "result": result}
                    for b, (name, result) in zip(results, pairs)
                ],
            )
        texts = [TextContent(text=b.text) for b in message.content if isinstance(b, TextBlock)]
        return MessageEvent(role="user", content=texts)

    if isinstance(message, ResultMessage):
        usage = message.usage or {}
        state.tokens_used += int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        if state.session_token is None and message.session_id:
            state.session_token = message.session_id
        return None

    return None


# ---------------------------------------------------------------------------
# Runner
# ---------------------------------------------------------------------------


class AgentRunner:
    """Run one agent turn and stream canonical events.

    Usage:
        runner = AgentRunner()
        async for event in runner.run(AgentRunOptions(prompt="hi", credential=key)):
            ...  # MessageEvent, ToolCallEvent, ..., then DoneEvent | ErrorEvent
    """

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine or claude_engine

    def build_sdk_options(self, options: AgentRunOptions, state: RunState) -> ClaudeAgentOptions:
        kwargs: dict[str, Any] = {
            "system_prompt": options.system_prompt,
            "allowed_tools": list(
                options.allowed_tools if options.allowed_tools is not None else settings.default_allowed_tools
            ),
            "max_turns": options.max_turns or settings.default_max_turns,
            "permission_mode": "bypassPermissions",
            "env": {"ANTHROPIC_API_KEY": options.credential},
        }
        if options.resumption_token:
            kwargs["resume"] = options.resumption_token
        if options.hooks:
            kwargs["hooks"] = _HookBridge(options.hooks, state).sdk_hooks()
        return ClaudeAgentOptions(**kwargs)

    async def run(self, options: AgentRunOptions) -> AsyncIterator[StreamEvent]:
        state = RunState()
        turns_used = 0
        try:
            sdk_options = self.build_sdk_options(options, state)
            async with aclosing(self._engine(options.prompt, sdk_options)) as messages:
                async for message in messages:
                    turns_used += 1
                    event = normalize_message(message, state)
                    if event is None:
                        continue
                    if isinstance(event, SystemEvent) and event.session_id and state.session_token is None:
                        state.session_token = event.session_id
                        logger.info("Engine session started (resumed=%s)", bool(options.resumption_token))
                    yield event
        except Exception as e:
            message = str(e) or type(e).__name__
            retryable = is_retryable(message)
            logger.warning("Agent run failed after %d messages (retryable=%s): %s", turns_used, retryable, message)
            yield ErrorEvent(error=message, retryable=retryable)
            return

        yield DoneEvent(turns_used=turns_used, tokens_used=state.tokens_used)
