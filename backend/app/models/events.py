"""Canonical stream events: the closed protocol exposed to callers.

Every raw engine message is normalized into exactly one of these (or
dropped). A run ends with exactly one DoneEvent or ErrorEvent.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter


class TextContent(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolUseContent(BaseModel):
    type: Literal["tool_use"] = "tool_use"
    id: str
    name: str
    input: Any = None


MessageContent = Annotated[Union[TextContent, ToolUseContent], Field(discriminator="type")]


class MessageEvent(BaseModel):
    """A message from the engine ("assistant") or the caller side ("user")."""

    type: Literal["message"] = "message"
    role: Literal["assistant", "user"]
    content: list[MessageContent] = Field(default_factory=list)


class ToolCallEvent(BaseModel):
    type: Literal["tool_call"] = "tool_call"
    tool_name: str
    tool_input: dict[str, Any] = Field(default_factory=dict)
    id: str | None = None


class ToolResultEvent(BaseModel):
    """Outcome of a tool execution, or a policy block carrying its reason."""

    type: Literal["tool_result"] = "tool_result"
    tool_name: str
    result: Any = None
    id: str | None = None


class AgentActionEvent(BaseModel):
    type: Literal["agent_action"] = "agent_action"
    action_type: Literal["mutation", "analysis"]
    data: Any = None


class SystemEvent(BaseModel):
    type: Literal["system"] = "system"
    subtype: str
    session_id: str | None = None  # Engine resumption token


class DoneEvent(BaseModel):
    type: Literal["done"] = "done"
    turns_used: int | None = None
    tokens_used: int | None = None


class ErrorEvent(BaseModel):
    type: Literal["error"] = "error"
    error: str
    retryable: bool | None = None


StreamEvent = Annotated[
    Union[
        MessageEvent,
        ToolCallEvent,
        ToolResultEvent,
        AgentActionEvent,
        SystemEvent,
        DoneEvent,
        ErrorEvent,
    ],
    Field(discriminator="type"),
]

stream_event_adapter: TypeAdapter[StreamEvent] = TypeAdapter(StreamEvent)

TERMINAL_EVENT_TYPES = frozenset({"done", "error"})


def is_terminal(event: BaseModel) -> bool:
    """True for the events that end a run (done / error)."""
    return getattr(event, "type", None) in TERMINAL_EVENT_TYPES


def text_of(event: MessageEvent) -> str:
    """Concatenate the text blocks of a message event, in order."""
    return "".join(block.text for block in event.content if isinstance(block, TextContent))
