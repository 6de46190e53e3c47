"""Condition evaluators — resolve named conditions against a blackboard.

:class:`ConditionEvaluator` is the pluggable contract used by planners and
goals.  :class:`BlackboardConditionEvaluator` is the default backend: facts
set directly on the blackboard win, then registered :class:`Condition`
predicates, and anything else is UNKNOWN.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from goalflow.core.conditions.models import Condition, Determination, LogicalExpression

if TYPE_CHECKING:
    from goalflow.core.blackboard.blackboard import Blackboard

logger = logging.getLogger(__name__)


@runtime_checkable
class ConditionEvaluator(Protocol):
    """Evaluates a named condition against the current blackboard."""

    def evaluate(self, condition_name: str, blackboard: Blackboard) -> Determination:
        """Return TRUE, FALSE or UNKNOWN for *condition_name*."""
        ...


def evaluate_expression(
    expression: LogicalExpression,
    evaluator: ConditionEvaluator,
    blackboard: Blackboard,
) -> Determination:
    """Evaluate *expression*, resolving each leaf through *evaluator*."""
    return expression.evaluate(lambda name: evaluator.evaluate(name, blackboard))


class BlackboardConditionEvaluator:
    """Default evaluator backed by blackboard facts and registered predicates.

    Satisfies the :class:`ConditionEvaluator` protocol.
    """

    def __init__(self, conditions: Iterable[Condition] = ()) -> None:
        self._conditions: dict[str, Condition] = {c.name: c for c in conditions}

    @property
    def conditions(self) -> dict[str, Condition]:
        return dict(self._conditions)

    def register(self, condition: Condition) -> None:
        self._conditions[condition.name] = condition

    def evaluate(self, condition_name: str, blackboard: Blackboard) -> Determination:
        fact = blackboard.get_condition(condition_name)
        if fact is not None:
            return Determination.from_bool(fact)

        condition = self._conditions.get(condition_name)
        if condition is None:
            return Determination.UNKNOWN

        try:
            result = condition.predicate(blackboard)
        except Exception as exc:
            logger.warning("Condition %s raised %s; treating as UNKNOWN", condition_name, exc)
            return Determination.UNKNOWN
        return Determination.from_bool(result)

    def evaluate_expression(
        self, expression: LogicalExpression, blackboard: Blackboard
    ) -> Determination:
        return evaluate_expression(expression, self, blackboard)
