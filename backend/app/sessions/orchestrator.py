"""SessionOrchestrator: per-session state machine over the agent stack.

States: active → ended, active → error. Nothing leaves ended/error.

A turn streams canonical events from AgentService (or StructuredAgent on top
of it) to the caller in order, then writes the resumption token and the
turn/token counters back to the session record in one update.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import aclosing
from datetime import datetime, timezone
from typing import Any

from app.agents.runner import AgentRunOptions
from app.agents.service import AgentService
from app.agents.structured import StructuredAgent
from app.config import settings
from app.execution.sandbox_manager import SandboxManager
from app.models.events import DoneEvent, ErrorEvent, StreamEvent, SystemEvent
from app.models.session import AgentSession, CreateSessionRequest
from app.models.session_checkpoint import SessionCheckpoint
from app.models.task import OneOffTask, TaskType
from app.sessions.repository import CheckpointRepository, SessionRepository
from app.skills.composer import PromptComposer
from app.skills.loader import SkillNotFoundError

logger = logging.getLogger(__name__)

TASK_PROMPTS: dict[TaskType, str] = {
    "analyze": (
        "Analyze this Linktree page and provide actionable insights to improve engagement and CTR. "
        "Focus on link titles, structure, and missing opportunities."
    ),
    "rename_titles": (
        "Suggest improved titles for each link on this page. Make them more action-oriented, clear, "
        "and clickable. Return mutations with the updated titles."
    ),
    "suggest_theme": (
        "Based on this creator's content and profile, suggest the best visual theme (colors, button "
        "style, font) for their Linktree page."
    ),
    "optimize_links": (
        "Review all links and suggest reordering, grouping, or restructuring to maximize engagement. "
        "The most important links should be at the top."
    ),
    "generate_bio": (
        "Write a compelling bio for this creator based on their profile and link content. "
        "Keep it under 150 characters."
    ),
}


class SessionNotFoundError(Exception):
    """No session with the given id."""


class SessionNotActiveError(Exception):
    """The session has ended or errored and accepts no more turns."""


class CheckpointNotFoundError(Exception):
    """No checkpoint with the given id belongs to the session."""


class SandboxNotAttachedError(Exception):
    """Checkpoint/restore requested for a session created without a sandbox."""


class SessionOrchestrator:
    """Usage:
        orchestrator = SessionOrchestrator(service, sandboxes, composer)
        session = await orchestrator.create_session("ws-1", CreateSessionRequest())
        async for event in orchestrator.stream_turn(session, "hello", credential):
            ...
        await orchestrator.end_session(session.id)
    """

    def __init__(
        self,
        service: AgentService,
        sandboxes: SandboxManager,
        composer: PromptComposer,
        sessions: SessionRepository | None = None,
        checkpoints: CheckpointRepository | None = None,
    ) -> None:
        self.service = service
        self.sandboxes = sandboxes
        self.composer = composer
        self.sessions = sessions or SessionRepository()
        self.checkpoints = checkpoints or CheckpointRepository()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def create_session(self, workspace_id: str, request: CreateSessionRequest) -> AgentSession:
        if not 1 <= request.max_turns <= settings.max_turns_limit:
            raise ValueError(f"max_turns must be between 1 and {settings.max_turns_limit}")
        # Raises SkillNotFoundError before anything is persisted
        self.composer.skills.load_many(list(request.skill_names))

        session = self.sessions.create(AgentSession(
            workspace_id=workspace_id,
            skill_names=list(request.skill_names),
            page_id=request.page_id,
            max_turns=request.max_turns,
        ))
        logger.info("Session %s created for workspace %s", session.id, workspace_id)

        if request.use_sandbox:
            try:
                sandbox = await self.sandboxes.create(session.id)
            except Exception as e:
                logger.warning("Sandbox creation failed for session %s, continuing without: %s", session.id, e)
            else:
                session = self.sessions.update(session.id, sandbox_id=sandbox.provider_id) or session
        return session

    def get_session(self, session_id: str) -> AgentSession:
        session = self.sessions.find(session_id)
        if session is None:
            raise SessionNotFoundError(f"Session {session_id} not found")
        return session

    def prepare_turn(self, session_id: str) -> AgentSession:
        """Load a session that can accept a turn, or raise."""
        session = self.get_session(session_id)
        if session.status != "active":
            raise SessionNotActiveError(f"Session {session_id} is not active")
        return session

    async def end_session(self, session_id: str) -> AgentSession:
        """End an active session. Ended and errored sessions are returned unchanged."""
        session = self.get_session(session_id)
        if session.sandbox_id:
            try:
                await self.sandboxes.destroy(session_id)
            except Exception as e:
                logger.warning("Sandbox destroy failed for session %s: %s", session_id, e)
        if session.status != "active":
            return session
        ended = self.sessions.update(session_id, status="ended", ended_at=datetime.now(timezone.utc))
        logger.info("Session %s ended", session_id)
        return ended or session

    # ------------------------------------------------------------------
    # Turns
    # ------------------------------------------------------------------

    def _run_options(self, session: AgentSession, prompt: str, credential: str) -> AgentRunOptions:
        return AgentRunOptions(
            prompt=prompt,
            credential=credential,
            resumption_token=session.resumption_token,
            system_prompt=self.composer.build_system_prompt(session.skill_names, workspace_id=session.workspace_id),
            max_turns=session.max_turns,
        )

    async def stream_turn(
        self,
        session: AgentSession,
        prompt: str,
        credential: str,
        structured: bool = False,
    ) -> AsyncIterator[StreamEvent]:
        """Forward one turn's events in order, committing the session once.

        The commit happens as the terminal event is reached, before it is
        handed to the consumer. If the consumer stops earlier, only a newly
        captured resumption token is written back.
        """
        try:
            options = self._run_options(session, prompt, credential)
        except SkillNotFoundError as e:
            error = ErrorEvent(error=str(e), retryable=False)
            self._commit_turn(session, None, error)
            yield error
            return
        if structured:
            events = StructuredAgent(runner=self.service).stream(options)
        else:
            events = self.service.run(options)

        captured: str | None = None
        committed = False
        try:
            async with aclosing(events) as stream:
                async for event in stream:
                    if (
                        isinstance(event, SystemEvent)
                        and event.session_id
                        and captured is None
                        and event.session_id != session.resumption_token
                    ):
                        captured = event.session_id
                    if isinstance(event, (DoneEvent, ErrorEvent)):
                        self._commit_turn(session, captured, event)
                        committed = True
                        yield event
                        break
                    yield event
        finally:
            if not committed and captured:
                logger.info("Turn on session %s interrupted, saving resumption token only", session.id)
                self.sessions.update(session.id, resumption_token=captured)

    def _commit_turn(self, session: AgentSession, captured: str | None, terminal: StreamEvent) -> None:
        fields: dict[str, Any] = {}
        increments: dict[str, int] = {}
        if captured:
            fields["resumption_token"] = captured
        if isinstance(terminal, DoneEvent):
            increments = {"turns_used": terminal.turns_used or 0, "tokens_used": terminal.tokens_used or 0}
        elif isinstance(terminal, ErrorEvent) and not terminal.retryable:
            logger.warning("Session %s moved to error: %s", session.id, terminal.error)
            fields["status"] = "error"
            fields["ended_at"] = datetime.now(timezone.utc)
        if fields or increments:
            self.sessions.update(session.id, increments=increments, **fields)

    # ------------------------------------------------------------------
    # Checkpoints
    # ------------------------------------------------------------------

    async def checkpoint(self, session_id: str, label: str | None = None) -> SessionCheckpoint:
        session = self.get_session(session_id)
        if not session.sandbox_id:
            raise SandboxNotAttachedError(f"Session {session_id} has no sandbox")
        token = await self.sandboxes.checkpoint(session_id)
        return self.checkpoints.create(SessionCheckpoint(
            session_id=session_id,
            provider_checkpoint_id=token,
            label=label,
        ))

    def list_checkpoints(self, session_id: str) -> list[SessionCheckpoint]:
        self.get_session(session_id)
        return self.checkpoints.list_for_session(session_id)

    async def restore(self, session_id: str, checkpoint_id: str) -> SessionCheckpoint:
        session = self.get_session(session_id)
        checkpoint = self.checkpoints.find(checkpoint_id)
        if checkpoint is None or checkpoint.session_id != session_id:
            raise CheckpointNotFoundError(f"Checkpoint {checkpoint_id} not found")
        if not session.sandbox_id:
            raise SandboxNotAttachedError(f"Session {session_id} has no sandbox")
        await self.sandboxes.restore(session_id, checkpoint.provider_checkpoint_id)
        return checkpoint

    # ------------------------------------------------------------------
    # One-off tasks
    # ------------------------------------------------------------------

    async def run_task(self, workspace_id: str, credential: str, task: OneOffTask) -> Any:
        """Run one structured task outside any session. Raises StructuredOutputError."""
        system_prompt = self.composer.build_system_prompt(
            [task.skill_name, "structured-output"],
            page_snapshot=task.page_data,
            workspace_id=workspace_id,
        )
        agent = StructuredAgent(runner=self.service)
        return await agent.run(AgentRunOptions(
            prompt=TASK_PROMPTS[task.task_type],
            credential=credential,
            system_prompt=system_prompt,
            allowed_tools=[],
            max_turns=task.max_turns,
        ))
