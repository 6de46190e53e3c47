"""Process events — what happened during a run, delivered to listeners.

Listeners are plain callables taking a :class:`ProcessEvent`.  They run
synchronously on the driving task, in registration order; a listener that
raises is logged and does not affect the run or the other listeners.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from goalflow.runtime.models import InvocationOutcome, ProcessStatus  # noqa: TC001

logger = logging.getLogger(__name__)


class ProcessEventType(str, Enum):
    CREATED = "created"
    PLAN_FORMULATED = "plan_formulated"
    ACTION_STARTED = "action_started"
    ACTION_RESULT = "action_result"
    GOAL_ACHIEVED = "goal_achieved"
    STUCK = "stuck"
    STATUS_CHANGED = "status_changed"


class ProcessEvent(BaseModel):
    """One observable step of a process."""

    model_config = ConfigDict(frozen=True)

    type: ProcessEventType
    process_id: str
    agent: str
    action: str | None = None
    goal: str | None = None
    outcome: InvocationOutcome | None = None
    status: ProcessStatus | None = None
    attempts: int | None = None
    detail: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


ProcessEventListener = Callable[[ProcessEvent], None]


def dispatch_event(listeners: list[ProcessEventListener], event: ProcessEvent) -> None:
    """Deliver *event* to every listener, isolating listener failures."""
    for listener in listeners:
        try:
            listener(event)
        except Exception:
            logger.exception("Event listener %r failed on %s", listener, event.type.value)


class LoggingEventListener:
    """Writes every event to a logger; failures and stuck runs at WARNING."""

    def __init__(self, name: str = "goalflow.events") -> None:
        self.logger = logging.getLogger(name)

    def __call__(self, event: ProcessEvent) -> None:
        level = logging.INFO
        if event.type is ProcessEventType.STUCK:
            level = logging.WARNING
        elif event.outcome is InvocationOutcome.FAILED or event.status is ProcessStatus.FAILED:
            level = logging.WARNING
        self.logger.log(level, "[%s] %s", event.process_id, describe_event(event))


def describe_event(event: ProcessEvent) -> str:
    """One-line, human-readable summary of *event*."""
    if event.type is ProcessEventType.CREATED:
        return f"created for agent {event.agent}"
    if event.type is ProcessEventType.PLAN_FORMULATED:
        return f"plan {event.detail}"

    if event.type is ProcessEventType.ACTION_STARTED:
        text = f"executing {event.action}"
    elif event.type is ProcessEventType.ACTION_RESULT:
        outcome = event.outcome.value if event.outcome is not None else "finished"
        text = f"{event.action} {outcome} after {event.attempts} attempt(s)"
    elif event.type is ProcessEventType.GOAL_ACHIEVED:
        text = f"achieved goal {event.goal}"
    elif event.type is ProcessEventType.STUCK:
        text = "stuck"
    else:
        text = f"status {event.status.value if event.status is not None else 'unknown'}"
    return f"{text}: {event.detail}" if event.detail else text
