"""Runtime models — process status, invocation history and reports."""

from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from goalflow.core.actions.outcomes import AwaitRequest  # noqa: TC001
from goalflow.core.blackboard.models import BlackboardSnapshot  # noqa: TC001


class ProcessStatus(str, Enum):
    """Lifecycle of an agent process.

    ``COMPLETED``, ``FAILED`` and ``KILLED`` are terminal.  ``WAITING``,
    ``PAUSED`` and ``STUCK`` suspend the run until it is resumed or run again.
    """

    RUNNING = "running"
    WAITING = "waiting"
    PAUSED = "paused"
    STUCK = "stuck"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL


_TERMINAL = frozenset({ProcessStatus.COMPLETED, ProcessStatus.FAILED, ProcessStatus.KILLED})


class InvocationOutcome(str, Enum):
    COMPLETED = "completed"
    REPLANNED = "replanned"
    AWAITING = "awaiting"
    FAILED = "failed"
    RECOVERED = "recovered"
    KILLED = "killed"


class ActionInvocation(BaseModel):
    """One entry of a process's execution history."""

    model_config = ConfigDict(frozen=True)

    action: str
    outcome: InvocationOutcome
    attempts: int = 1
    running_time: float = 0.0
    detail: str = ""
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))


class ProcessOptions(BaseModel):
    """Per-run limits."""

    model_config = ConfigDict(frozen=True)

    max_actions: int | None = Field(default=None, ge=1)
    max_stuck_replans: int = Field(default=3, ge=0)


class ProcessReport(BaseModel):
    """Diagnostic view of a process, suitable for logging or display."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    process_id: str
    agent: str
    status: ProcessStatus
    error: str | None = None
    goal_achieved: str | None = None
    unsatisfied_goals: list[str] = []
    blackboard: BlackboardSnapshot
    pending_request: AwaitRequest | None = None
    history: list[ActionInvocation] = []
    actions_executed: int = 0
    running_time: float = 0.0
