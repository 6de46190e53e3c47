"""Retry — invoke an action up to its policy's attempt limit.

Failures during retry are logged, not surfaced, until attempts run out.
Replan and await outcomes end the retry loop immediately and never consume
retry budget.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from opentelemetry import trace

from goalflow.core.actions.models import RetryPolicy
from goalflow.core.actions.outcomes import OUTCOME_TYPES, ActionOutcome, Completed, Failed
from goalflow.core.blackboard.errors import BindingTypeError

if TYPE_CHECKING:
    from goalflow.core.actions.context import ActionContext
    from goalflow.core.actions.models import Action

logger = logging.getLogger(__name__)


async def invoke_once(action: Action, context: ActionContext) -> ActionOutcome:
    """Invoke *action* a single time and normalise the result to an outcome."""
    try:
        result = action.run(context)
        if inspect.isawaitable(result):
            result = await result
    except asyncio.CancelledError:
        raise
    except Exception as exc:
        return Failed(exc)

    outcome: ActionOutcome = result if isinstance(result, OUTCOME_TYPES) else Completed(result)
    if isinstance(outcome, Completed) and action.output_type is not None:
        if not isinstance(outcome.value, action.output_type):
            return Failed(
                BindingTypeError(action.output_binding, action.output_type, type(outcome.value))
            )
    return outcome


async def invoke_with_retry(
    action: Action,
    make_context: Callable[[int], ActionContext],
    *,
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[ActionOutcome, int]:
    """Invoke *action* until it does not fail or attempts are exhausted.

    Args:
        action: The action to invoke.
        make_context: Builds the context for a given 1-based attempt number.
        policy: Overrides ``action.retry``; defaults to a single attempt.
        sleep: Awaitable delay used for backoff.

    Returns:
        The final outcome and the number of attempts made.
    """
    effective = policy or action.retry or RetryPolicy()
    span = trace.get_current_span()
    outcome: ActionOutcome = Failed(RuntimeError("action was never invoked"))

    for attempt in range(1, effective.max_attempts + 1):
        delay = effective.delay_before(attempt)
        if delay > 0:
            await sleep(delay)

        outcome = await invoke_once(action, make_context(attempt))
        if not isinstance(outcome, Failed):
            return outcome, attempt

        if attempt < effective.max_attempts:
            logger.warning(
                "Action %s failed on attempt %d of %d: %s",
                action.name,
                attempt,
                effective.max_attempts,
                outcome.error,
            )
            span.add_event(
                "action.retry",
                {"attempt": attempt, "error": str(outcome.error)},
            )

    return outcome, effective.max_attempts
