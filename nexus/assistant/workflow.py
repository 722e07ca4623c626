"""Assistant run orchestration as an explicit state machine.

One invocation walks::

    pending -> thread_created -> message_posted -> run_started -> polling
            -> completed | failed | timed_out

``AssistantWorkflow.step`` advances an ``AssistantRun`` by one phase (one
status check while polling), so callers and tests can drive or inspect the
sequence one transition at a time. ``AssistantWorkflow.run`` steps to a
terminal phase and either returns the reply text or raises the recorded
error. Nothing is shared between invocations.

Usage (CLI test)::

    python -m nexus.assistant.workflow "What should I focus on today?"
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

import requests

from nexus.assistant.client import AssistantClient, require_credentials
from nexus.common.errors import MalformedResponseError, NexusError, RunNotCompletedError

logger = logging.getLogger("nexus.assistant.workflow")

TERMINAL_RUN_STATUSES = ("completed", "failed", "cancelled")
_FAILED_RUN_STATUSES = ("failed", "cancelled", "requires_action")


class RunPhase(str, Enum):
    PENDING = "pending"
    THREAD_CREATED = "thread_created"
    MESSAGE_POSTED = "message_posted"
    RUN_STARTED = "run_started"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


_TERMINAL_PHASES = (RunPhase.COMPLETED, RunPhase.FAILED, RunPhase.TIMED_OUT)


@dataclass
class AssistantRun:
    message: str
    phase: RunPhase = RunPhase.PENDING
    thread_id: str | None = None
    run_id: str | None = None
    run_status: str | None = None
    attempts: int = 0
    response: str | None = None
    error: NexusError | None = None
    history: list[RunPhase] = field(default_factory=list)

    @property
    def terminal(self) -> bool:
        return self.phase in _TERMINAL_PHASES


def extract_response(messages_data: dict[str, Any]) -> str:
    """Join the text segments of the newest assistant message."""
    data = messages_data.get("data") if isinstance(messages_data, dict) else None
    if not isinstance(data, list):
        raise MalformedResponseError("Message list response has no 'data' array")

    latest = next((m for m in data if isinstance(m, dict) and m.get("role") == "assistant"), None)
    if latest is None:
        logger.error("No assistant message found in the response")
        raise MalformedResponseError("No assistant message found in the response")

    segments = latest.get("content") or []
    if not isinstance(segments, list):
        raise MalformedResponseError("Assistant message content is not a list")

    parts: list[str] = []
    for content in segments:
        if not isinstance(content, dict) or content.get("type") != "text":
            continue
        text = content.get("text")
        value = text.get("value") if isinstance(text, dict) else text
        if value is not None:
            parts.append(str(value))
    return "\n".join(parts)


class AssistantWorkflow:
    """Runs one message through thread -> message -> run -> poll -> reply."""

    def __init__(
        self,
        settings: dict[str, Any],
        max_attempts: int | None = None,
        session: requests.Session | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._max_attempts = int(max_attempts or settings.get("chat_max_attempts") or 30)
        self._interval = float(settings.get("poll_interval", 1.0))
        self._session = session
        self._sleep = sleep
        self._client: AssistantClient | None = None
        self._assistant_id: str | None = None

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def start(self, message: str) -> AssistantRun:
        return AssistantRun(message=message)

    def run(self, message: str) -> str:
        state = self.start(message)
        while not state.terminal:
            self.step(state)
        if state.error is not None:
            raise state.error
        return state.response or ""

    def step(self, state: AssistantRun) -> AssistantRun:
        if state.terminal:
            return state
        try:
            self._advance(state)
        except RunNotCompletedError as exc:
            state.error = exc
            if exc.run_status in _FAILED_RUN_STATUSES:
                self._move(state, RunPhase.FAILED)
            else:
                self._move(state, RunPhase.TIMED_OUT)
        except NexusError as exc:
            state.error = exc
            self._move(state, RunPhase.FAILED)
        return state

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _move(self, state: AssistantRun, phase: RunPhase) -> None:
        state.history.append(state.phase)
        state.phase = phase
        logger.info("Assistant run %s -> %s", state.history[-1].value, phase.value)

    def _advance(self, state: AssistantRun) -> None:
        if state.phase is RunPhase.PENDING:
            _, self._assistant_id = require_credentials(self._settings)
            logger.info("Environment variables validated successfully")
            self._client = AssistantClient.from_settings(self._settings, session=self._session)
            thread = self._client.create_thread()
            state.thread_id = thread.get("id")
            if not state.thread_id:
                raise MalformedResponseError("Thread creation response has no id")
            logger.info("Thread created with ID: %s", state.thread_id)
            self._move(state, RunPhase.THREAD_CREATED)

        elif state.phase is RunPhase.THREAD_CREATED:
            self._client.add_message(state.thread_id, state.message)
            logger.info("Message added to thread")
            self._move(state, RunPhase.MESSAGE_POSTED)

        elif state.phase is RunPhase.MESSAGE_POSTED:
            run = self._client.create_run(state.thread_id, self._assistant_id)
            state.run_id = run.get("id")
            if not state.run_id:
                raise MalformedResponseError("Run creation response has no id")
            state.run_status = run.get("status")
            logger.info("Run created with ID: %s", state.run_id)
            self._move(state, RunPhase.RUN_STARTED)

        elif state.phase is RunPhase.RUN_STARTED:
            if state.run_status in TERMINAL_RUN_STATUSES:
                self._settle(state)
            else:
                self._move(state, RunPhase.POLLING)

        elif state.phase is RunPhase.POLLING:
            self._poll_once(state)

    def _poll_once(self, state: AssistantRun) -> None:
        if state.attempts >= self._max_attempts:
            logger.error("Run ended with non-completed status: %s", state.run_status)
            raise RunNotCompletedError(
                f"Run ended with status: {state.run_status}. The process timed out or failed.",
                run_status=state.run_status,
                attempts=state.attempts,
            )

        logger.info("Checking run status (attempt %d)...", state.attempts + 1)
        self._sleep(self._interval)
        state.attempts += 1
        run = self._client.get_run(state.thread_id, state.run_id)
        state.run_status = run.get("status")
        logger.info("Current run status: %s", state.run_status)

        if state.run_status == "requires_action":
            logger.info("Run requires action: %s", run.get("required_action"))
            raise RunNotCompletedError(
                "Run requires action which is not supported in this implementation",
                run_status=state.run_status,
                attempts=state.attempts,
            )
        if state.run_status in TERMINAL_RUN_STATUSES:
            self._settle(state)

    def _settle(self, state: AssistantRun) -> None:
        if state.run_status != "completed":
            logger.error("Run ended with non-completed status: %s", state.run_status)
            raise RunNotCompletedError(
                f"Run ended with status: {state.run_status}. The process timed out or failed.",
                run_status=state.run_status,
                attempts=state.attempts,
            )
        logger.info("Retrieving assistant messages...")
        state.response = extract_response(self._client.list_messages(state.thread_id))
        logger.info("Successfully retrieved assistant response")
        self._move(state, RunPhase.COMPLETED)


def ask_assistant(
    settings: dict[str, Any],
    message: str,
    session: requests.Session | None = None,
    sleep: Callable[[float], None] = time.sleep,
) -> str:
    """Free-text question to the assistant; returns the reply text."""
    workflow = AssistantWorkflow(
        settings, max_attempts=settings.get("chat_max_attempts"), session=session, sleep=sleep,
    )
    return workflow.run(message)


if __name__ == "__main__":
    import sys

    from nexus.common.config import load_config, load_env_local, setup_logging

    load_env_local()
    cfg = load_config()
    setup_logging(cfg)
    question = " ".join(sys.argv[1:]) or "What should I focus on today?"
    try:
        print(ask_assistant(cfg["assistant"], question))
    except NexusError as exc:
        print(f"{exc.kind}: {exc.message}\n{exc.details}", file=sys.stderr)
        sys.exit(1)
