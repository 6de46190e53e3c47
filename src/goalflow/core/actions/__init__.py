"""Actions — descriptors, outcomes, invocation context and retry."""

from goalflow.core.actions.context import ActionContext
from goalflow.core.actions.models import Action, Agent, Goal, InputBinding, RetryPolicy
from goalflow.core.actions.outcomes import (
    ActionOutcome,
    AwaitRequest,
    Awaiting,
    Completed,
    Failed,
    ReplanRequested,
)
from goalflow.core.actions.retry import invoke_once, invoke_with_retry

__all__ = [
    "Action",
    "ActionContext",
    "ActionOutcome",
    "Agent",
    "AwaitRequest",
    "Awaiting",
    "Completed",
    "Failed",
    "Goal",
    "InputBinding",
    "ReplanRequested",
    "RetryPolicy",
    "invoke_once",
    "invoke_with_retry",
]
