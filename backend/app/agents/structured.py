"""StructuredAgent: forces the engine's final answer to match a schema.

Wraps a runner (AgentRunner or AgentService) with:
1. Output-format instructions appended to the system prompt.
2. A bounded retry loop. Each retry repeats the original prompt plus the
   previous attempt's validation error, so the model can correct itself.

Only JSON-shape and schema failures are retried. An engine error ends the
loop at once and is surfaced as fatal; retrying transport errors is the
caller's decision.

Usage:
    agent = StructuredAgent(AgentResponse, runner=AgentService())
    result = await agent.run(AgentRunOptions(prompt="Rename my links", credential=key))
    # result is a MutationResponse | AnalysisResponse | MessageResponse
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import AsyncIterator
from contextlib import aclosing
from dataclasses import dataclass
from typing import Any, Protocol

from pydantic import TypeAdapter, ValidationError

from app.agents.runner import AgentRunner, AgentRunOptions
from app.config import settings
from app.models.agent_output import AgentResponse
from app.models.events import (
    AgentActionEvent,
    DoneEvent,
    ErrorEvent,
    MessageEvent,
    StreamEvent,
    TextContent,
    is_terminal,
    text_of,
)

logger = logging.getLogger(__name__)

NO_JSON_FOUND = "Response did not contain a valid JSON object"

_FENCE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
_OUTERMOST_OBJECT = re.compile(r"\{[\s\S]*\}")
_MISSING = object()


class Runner(Protocol):
    def run(self, options: AgentRunOptions) -> AsyncIterator[StreamEvent]: ...


class StructuredOutputError(Exception):
    """Raised when no schema-conforming value could be obtained."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        last_error: str | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.last_error = last_error
        self.retryable = retryable


def extract_json(text: str) -> Any:
    """Pull a JSON value out of free text.

    Fenced code blocks are tried first, in order; then the outermost
    brace-delimited span of the whole text. Returns None when nothing parses.
    """
    value = _extract(text)
    return None if value is _MISSING else value


def _extract(text: str) -> Any:
    for match in _FENCE.finditer(text):
        try:
            return json.loads(match.group(1).strip())
        except ValueError:
            continue
    match = _OUTERMOST_OBJECT.search(text)
    if match:
        try:
            return json.loads(match.group(0))
        except ValueError:
            pass
    return _MISSING


@dataclass
class _Outcome:
    """Final result of the attempt loop (internal, never sent to callers)."""

    value: Any = None
    error: str | None = None
    retryable: bool = False
    attempts: int = 0
    last_error: str | None = None
    turns_used: int = 0
    tokens_used: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


class StructuredAgent:
    def __init__(
        self,
        schema: Any = AgentResponse,
        max_attempts: int | None = None,
        runner: Runner | None = None,
    ) -> None:
        self.schema = schema
        self.max_attempts = max_attempts or settings.structured_output_max_attempts
        self.runner = runner or AgentRunner()
        self._adapter: TypeAdapter[Any] = TypeAdapter(schema)

    # ------------------------------------------------------------------
    # Prompts
    # ------------------------------------------------------------------

    def build_instructions(self) -> str:
        schema_json = json.dumps(self._adapter.json_schema(), indent=2)
        return (
            "## Output Format\n\n"
            "You MUST respond ONLY with a JSON object wrapped in a ```json code block.\n"
            "Do not include any prose before or after the JSON block.\n\n"
            "Required schema (JSON Schema):\n"
            f"```json\n{schema_json}\n```\n\n"
            "Example response format:\n"
            '```json\n{ "type": "...", "data": { ... } }\n```'
        )

    def augment_system_prompt(self, system_prompt: str | None) -> str:
        instructions = self.build_instructions()
        return f"{system_prompt}\n\n{instructions}" if system_prompt else instructions

    @staticmethod
    def attempt_prompt(prompt: str, last_error: str | None) -> str:
        if not last_error:
            return prompt
        return (
            f"{prompt}\n\nYour previous response was invalid. Error: {last_error}\n"
            "Please respond with valid JSON matching the schema."
        )

    # ------------------------------------------------------------------
    # Attempt loop
    # ------------------------------------------------------------------

    async def _attempts(self, options: AgentRunOptions) -> AsyncIterator[StreamEvent | _Outcome]:
        """Yield every non-terminal event of every attempt, then one _Outcome."""
        base = options.replace(system_prompt=self.augment_system_prompt(options.system_prompt))
        last_error: str | None = None
        turns_used = 0
        tokens_used = 0

        for attempt in range(self.max_attempts):
            text_parts: list[str] = []
            terminal: StreamEvent | None = None
            run_options = base.replace(prompt=self.attempt_prompt(options.prompt, last_error))

            async with aclosing(self.runner.run(run_options)) as events:
                async for event in events:
                    if is_terminal(event):
                        terminal = event
                        continue
                    if isinstance(event, MessageEvent) and event.role == "assistant":
                        text_parts.append(text_of(event))
                    yield event

            if isinstance(terminal, ErrorEvent):
                logger.warning("Structured attempt %d aborted by engine error: %s", attempt + 1, terminal.error)
                yield _Outcome(
                    error=f"Agent error: {terminal.error}",
                    retryable=bool(terminal.retryable),
                    attempts=attempt + 1,
                    last_error=terminal.error,
                    turns_used=turns_used,
                    tokens_used=tokens_used,
                )
                return
            if isinstance(terminal, DoneEvent):
                turns_used += terminal.turns_used or 0
                tokens_used += terminal.tokens_used or 0

            extracted = _extract("".join(text_parts))
            if extracted is _MISSING:
                last_error = NO_JSON_FOUND
            else:
                try:
                    value = self._adapter.validate_python(extracted)
                except ValidationError as e:
                    last_error = e.json(indent=2, include_url=False)
                else:
                    yield _Outcome(
                        value=value,
                        attempts=attempt + 1,
                        turns_used=turns_used,
                        tokens_used=tokens_used,
                    )
                    return
            logger.info("Structured attempt %d/%d invalid: %s", attempt + 1, self.max_attempts, last_error[:200])

        yield _Outcome(
            error=f"Structured output failed after {self.max_attempts} attempts. Last error: {last_error}",
            attempts=self.max_attempts,
            last_error=last_error,
            turns_used=turns_used,
            tokens_used=tokens_used,
        )

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def run(self, options: AgentRunOptions) -> Any:
        """Return the first schema-conforming value, or raise StructuredOutputError."""
        outcome = _Outcome(error="Structured output produced no outcome")
        async for item in self._attempts(options):
            if isinstance(item, _Outcome):
                outcome = item
        if outcome.ok:
            return outcome.value
        raise StructuredOutputError(
            outcome.error or "Structured output failed",
            attempts=outcome.attempts,
            last_error=outcome.last_error,
            retryable=outcome.retryable,
        )

    async def stream(self, options: AgentRunOptions) -> AsyncIterator[StreamEvent]:
        """Canonical-event view of run(): attempt events, the result, one terminal."""
        outcome = _Outcome(error="Structured output produced no outcome")
        async with aclosing(self._attempts(options)) as items:
            async for item in items:
                if isinstance(item, _Outcome):
                    outcome = item
                else:
                    yield item
        if not outcome.ok:
            yield ErrorEvent(error=outcome.error or "Structured output failed", retryable=outcome.retryable)
            return
        yield self.result_event(outcome.value)
        yield DoneEvent(turns_used=outcome.turns_used, tokens_used=outcome.tokens_used)

    def result_event(self, value: Any) -> StreamEvent:
        data = self._adapter.dump_python(value, mode="json")
        kind = data.get("type") if isinstance(data, dict) else None
        if kind in ("mutation", "analysis"):
            return AgentActionEvent(action_type=kind, data=data.get("data"))
        if kind == "message" and isinstance(data.get("data"), dict):
            return MessageEvent(role="assistant", content=[TextContent(text=str(data["data"].get("content", "")))])
        return MessageEvent(role="assistant", content=[TextContent(text=json.dumps(data))])
