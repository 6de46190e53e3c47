"""Action, goal and agent descriptors.

These are immutable values produced once by a registration step (code,
configuration or discovery; the runtime does not care which).  The planners
and the execution loop depend only on them.

Condition keys used by the planners:

* ``has:<type>`` — a value of ``<type>`` exists on the blackboard;
* ``bound:<name>`` / ``bound:<name>:<type>`` — a binding exists (of that type);
* ``last:<type>`` — the most recently added value is of ``<type>``;
* any other key is a named condition resolved by a condition evaluator.
"""

from __future__ import annotations

import builtins
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from goalflow.core.actions.context import ActionContext  # noqa: TC001
from goalflow.core.blackboard.blackboard import Blackboard  # noqa: TC001
from goalflow.core.blackboard.models import DEFAULT_BINDING, is_state_type, type_key
from goalflow.core.conditions.evaluator import ConditionEvaluator, evaluate_expression
from goalflow.core.conditions.models import Condition, Determination, LogicalExpression
from goalflow.core.conditions.parser import parse_expression

CostFunction = Callable[[Blackboard], float]


def _parse_condition(value: Any) -> Any:
    if isinstance(value, str):
        return parse_expression(value)
    return value


class RetryPolicy(BaseModel):
    """How often an action is attempted and how long to wait in between.

    The delay before attempt ``n`` (``n >= 2``) is
    ``backoff * backoff_multiplier ** (n - 2)``, capped at ``max_backoff``.
    """

    model_config = ConfigDict(frozen=True)

    max_attempts: int = Field(default=1, ge=1)
    backoff: float = Field(default=0.0, ge=0.0, description="Seconds before attempt 2.")
    backoff_multiplier: float = Field(default=1.0, ge=1.0)
    max_backoff: float | None = Field(default=None, ge=0.0)

    def delay_before(self, attempt: int) -> float:
        """Seconds to wait before *attempt* (1-based)."""
        if attempt <= 1 or self.backoff == 0:
            return 0.0
        delay = self.backoff * self.backoff_multiplier ** (attempt - 2)
        if self.max_backoff is not None:
            delay = min(delay, self.max_backoff)
        return delay


class InputBinding(BaseModel):
    """A required input: a named binding, a type lookup, or a last-result test."""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    type: builtins.type | None = None
    last_result: bool = False

    @model_validator(mode="after")
    def _check(self) -> InputBinding:
        if self.name is None and self.type is None:
            msg = "an input needs a name, a type, or both"
            raise ValueError(msg)
        if self.last_result and self.type is None:
            msg = "a last-result input needs a type"
            raise ValueError(msg)
        return self

    @property
    def label(self) -> str:
        """Key under which the resolved value is exposed to the action."""
        if self.name is not None:
            return self.name
        assert self.type is not None
        return self.type.__name__

    @property
    def condition_key(self) -> str:
        if self.last_result:
            assert self.type is not None
            return f"last:{type_key(self.type)}"
        if self.name is not None:
            if self.type is None:
                return f"bound:{self.name}"
            return f"bound:{self.name}:{type_key(self.type)}"
        assert self.type is not None
        return f"has:{type_key(self.type)}"

    def resolve(self, blackboard: Blackboard) -> tuple[bool, Any]:
        """Look the input up at use time; returns ``(found, value)``."""
        if self.last_result:
            value = blackboard.last_result()
            found = self.type is not None and isinstance(value, self.type)
            return found, value if found else None
        if self.name is not None:
            if self.name not in blackboard:
                return False, None
            value = blackboard.get(self.name)
            if self.type is not None and not isinstance(value, self.type):
                return False, None
            return True, value
        assert self.type is not None
        value = blackboard.get_by_type(self.type)
        return value is not None, value


class Action(BaseModel):
    """Immutable description of a unit of work."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str = ""
    run: Callable[[ActionContext], Any]
    inputs: tuple[InputBinding, ...] = ()
    output_type: type | None = None
    output_binding: str = DEFAULT_BINDING
    clears_state: bool | None = None
    pre: tuple[LogicalExpression, ...] = ()
    post: tuple[str, ...] = ()
    cost: float | CostFunction = 0.0
    value: float | CostFunction = 0.0
    retry: RetryPolicy | None = None
    can_rerun: bool = False
    recovery: str | None = None

    @field_validator("pre", mode="before")
    @classmethod
    def _parse_pre(cls, value: Any) -> Any:
        if isinstance(value, str):
            value = (value,)
        return tuple(_parse_condition(v) for v in value)

    @field_validator("inputs", mode="before")
    @classmethod
    def _coerce_inputs(cls, value: Any) -> Any:
        coerced: list[Any] = []
        for item in value:
            if isinstance(item, type):
                coerced.append(InputBinding(type=item))
            elif isinstance(item, str):
                coerced.append(InputBinding(name=item))
            else:
                coerced.append(item)
        return tuple(coerced)

    @property
    def clears_blackboard(self) -> bool:
        """Whether successful completion clears default bindings."""
        if self.clears_state is not None:
            return self.clears_state
        return is_state_type(self.output_type)

    def precondition_keys(self) -> set[str]:
        keys = {i.condition_key for i in self.inputs}
        for expression in self.pre:
            keys |= expression.condition_names()
        return keys

    def resolve_inputs(self, blackboard: Blackboard) -> dict[str, Any] | None:
        """Resolve every input, or return ``None`` if any is missing."""
        resolved: dict[str, Any] = {}
        for binding in self.inputs:
            found, value = binding.resolve(blackboard)
            if not found:
                return None
            resolved[binding.label] = value
        return resolved

    def cost_for(self, blackboard: Blackboard) -> float:
        return float(self.cost(blackboard) if callable(self.cost) else self.cost)

    def value_for(self, blackboard: Blackboard) -> float:
        return float(self.value(blackboard) if callable(self.value) else self.value)

    def __str__(self) -> str:
        return self.name


class Goal(BaseModel):
    """A target condition over the blackboard.

    Satisfaction depends only on current blackboard and condition state,
    never on execution history.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    satisfied_by: type | None = None
    condition: LogicalExpression | None = None
    value: float = 0.0

    @field_validator("condition", mode="before")
    @classmethod
    def _parse(cls, value: Any) -> Any:
        return _parse_condition(value)

    @model_validator(mode="after")
    def _check(self) -> Goal:
        if self.satisfied_by is None and self.condition is None:
            msg = f"goal '{self.name}' needs satisfied_by, condition, or both"
            raise ValueError(msg)
        return self

    def condition_keys(self) -> set[str]:
        keys: set[str] = set()
        if self.satisfied_by is not None:
            keys.add(f"has:{type_key(self.satisfied_by)}")
        if self.condition is not None:
            keys |= self.condition.condition_names()
        return keys

    def is_satisfied(self, blackboard: Blackboard, evaluator: ConditionEvaluator) -> Determination:
        result = Determination.TRUE
        if self.satisfied_by is not None:
            if blackboard.get_by_type(self.satisfied_by) is None:
                return Determination.FALSE
        if self.condition is not None:
            result = evaluate_expression(self.condition, evaluator, blackboard)
        return result

    def __str__(self) -> str:
        return self.name


class Agent(BaseModel):
    """The closed set of actions, goals and conditions an agent runs with."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str = ""
    actions: tuple[Action, ...]
    goals: tuple[Goal, ...]
    conditions: tuple[Condition, ...] = ()

    @model_validator(mode="after")
    def _check(self) -> Agent:
        names = [a.name for a in self.actions]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            msg = f"duplicate action names: {', '.join(duplicates)}"
            raise ValueError(msg)
        for action in self.actions:
            if action.recovery is not None and action.recovery not in names:
                msg = f"action '{action.name}' names unknown recovery '{action.recovery}'"
                raise ValueError(msg)
        if not self.goals:
            msg = f"agent '{self.name}' declares no goals"
            raise ValueError(msg)
        return self

    def action(self, name: str) -> Action:
        """Return the action called *name*.

        Raises:
            KeyError: If no such action exists.
        """
        for action in self.actions:
            if action.name == name:
                return action
        raise KeyError(name)
