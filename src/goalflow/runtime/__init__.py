"""Runtime — agent processes, the stuck policy and the run control surface."""

from goalflow.runtime.errors import (
    ActionBudgetExceededError,
    ActionFailedError,
    InvalidProcessStateError,
    NoPlanFoundError,
    ProcessError,
    ProcessNotFoundError,
)
from goalflow.runtime.events import (
    LoggingEventListener,
    ProcessEvent,
    ProcessEventListener,
    ProcessEventType,
)
from goalflow.runtime.models import (
    ActionInvocation,
    InvocationOutcome,
    ProcessOptions,
    ProcessReport,
    ProcessStatus,
)
from goalflow.runtime.platform import AgentPlatform
from goalflow.runtime.process import AgentProcess
from goalflow.runtime.stuck import StuckAction, StuckDecision, StuckHandler

__all__ = [
    "ActionBudgetExceededError",
    "ActionFailedError",
    "ActionInvocation",
    "AgentPlatform",
    "AgentProcess",
    "InvalidProcessStateError",
    "InvocationOutcome",
    "LoggingEventListener",
    "NoPlanFoundError",
    "ProcessError",
    "ProcessEvent",
    "ProcessEventListener",
    "ProcessEventType",
    "ProcessNotFoundError",
    "ProcessOptions",
    "ProcessReport",
    "ProcessStatus",
    "StuckAction",
    "StuckDecision",
    "StuckHandler",
]
