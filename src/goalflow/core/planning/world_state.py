"""World state — a condition-keyed, three-valued view of the blackboard.

The planners never touch the blackboard while searching.  They take one
:class:`WorldState` derived from it and simulate action effects on copies.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import TYPE_CHECKING

from goalflow.core.actions.models import InputBinding
from goalflow.core.blackboard.blackboard import Blackboard
from goalflow.core.conditions.models import Determination, LogicalExpression

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action, Goal
    from goalflow.core.conditions.evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)


class WorldState(Mapping[str, Determination]):
    """Immutable, hashable mapping of condition key to determination.

    Keys that were never determined read as UNKNOWN.
    """

    __slots__ = ("_items", "_hash")

    def __init__(self, items: Mapping[str, Determination] | None = None) -> None:
        self._items: dict[str, Determination] = dict(sorted((items or {}).items()))
        self._hash = hash(tuple(self._items.items()))

    def __getitem__(self, key: str) -> Determination:
        return self._items[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __hash__(self) -> int:
        return self._hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, WorldState):
            return NotImplemented
        return self._items == other._items

    def determination(self, key: str) -> Determination:
        return self._items.get(key, Determination.UNKNOWN)

    def evaluate(self, expression: LogicalExpression) -> Determination:
        return expression.evaluate(self.determination)

    def with_updates(self, updates: Mapping[str, Determination]) -> WorldState:
        if not updates:
            return self
        return WorldState({**self._items, **updates})

    def __repr__(self) -> str:
        body = ", ".join(f"{k}={v.value}" for k, v in self._items.items())
        return f"WorldState({body})"


def _goal_binding(goal: Goal) -> InputBinding | None:
    if goal.satisfied_by is None:
        return None
    return InputBinding(type=goal.satisfied_by)


class WorldStateDeterminer:
    """Derives :class:`WorldState` from a blackboard and simulates effects.

    Type-derived keys (``has:``, ``bound:``, ``last:``) are answered from the
    blackboard directly; every other key goes to the condition evaluator.
    """

    def __init__(self, evaluator: ConditionEvaluator) -> None:
        self.evaluator = evaluator

    # ------------------------------------------------------------------
    # Key discovery
    # ------------------------------------------------------------------

    @staticmethod
    def bindings_for(goals: Iterable[Goal], actions: Iterable[Action]) -> dict[str, InputBinding]:
        """Every type-derived key referenced by *goals* and *actions*."""
        bindings: dict[str, InputBinding] = {}
        for action in actions:
            for binding in action.inputs:
                bindings.setdefault(binding.condition_key, binding)
        for goal in goals:
            binding = _goal_binding(goal)
            if binding is not None:
                bindings.setdefault(binding.condition_key, binding)
        return bindings

    @staticmethod
    def named_conditions_for(goals: Iterable[Goal], actions: Iterable[Action]) -> set[str]:
        names: set[str] = set()
        for action in actions:
            for expression in action.pre:
                names |= expression.condition_names()
            names |= set(action.post)
        for goal in goals:
            if goal.condition is not None:
                names |= goal.condition.condition_names()
        return names

    @staticmethod
    def fact_keys_for(actions: Iterable[Action]) -> set[str]:
        """Condition names that actions record as blackboard facts."""
        return {name for action in actions for name in action.post}

    # ------------------------------------------------------------------
    # Determination
    # ------------------------------------------------------------------

    def current(
        self,
        blackboard: Blackboard,
        goals: Iterable[Goal],
        actions: Iterable[Action],
    ) -> WorldState:
        """Determine every key referenced by *goals* and *actions*."""
        goals = list(goals)
        actions = list(actions)
        bindings = self.bindings_for(goals, actions)
        items: dict[str, Determination] = {}
        for key, binding in bindings.items():
            found, _ = binding.resolve(blackboard)
            items[key] = Determination.from_bool(found)
        for name in self.named_conditions_for(goals, actions) - bindings.keys():
            items[name] = self.evaluator.evaluate(name, blackboard)
        state = WorldState(items)
        logger.debug("Determined %r", state)
        return state

    def goal_satisfaction(self, state: WorldState, goal: Goal) -> Determination:
        result = Determination.TRUE
        binding = _goal_binding(goal)
        if binding is not None:
            result = state.determination(binding.condition_key)
            if result is Determination.FALSE:
                return result
        if goal.condition is not None:
            condition = state.evaluate(goal.condition)
            if condition is not Determination.TRUE:
                return condition
        return result

    @staticmethod
    def is_applicable(state: WorldState, action: Action) -> bool:
        """Every precondition must be TRUE; UNKNOWN blocks."""
        for binding in action.inputs:
            if state.determination(binding.condition_key) is not Determination.TRUE:
                return False
        return all(state.evaluate(expression).is_true for expression in action.pre)

    # ------------------------------------------------------------------
    # Simulation
    # ------------------------------------------------------------------

    def surviving_keys(
        self, blackboard: Blackboard, bindings: Mapping[str, InputBinding]
    ) -> set[str]:
        """Type-derived keys still TRUE once default bindings are cleared."""
        with blackboard.lock:
            protected = {n: blackboard.get(n) for n in blackboard.protected_names()}
        view = Blackboard(protected=protected)
        return {key for key, binding in bindings.items() if binding.resolve(view)[0]}

    def apply(
        self,
        state: WorldState,
        action: Action,
        bindings: Mapping[str, InputBinding],
        surviving: set[str],
        facts: Iterable[str] = (),
    ) -> WorldState:
        """Simulate the effects of *action* succeeding in *state*.

        A clearing action drops every fact in *facts*; whether they hold
        afterwards is unknown until something records them again.
        """
        updates: dict[str, Determination] = {}

        if action.clears_blackboard:
            for key in bindings:
                updates[key] = Determination.from_bool(key in surviving)
            for name in facts:
                if name not in bindings:
                    updates[name] = Determination.UNKNOWN

        output = action.output_type
        if output is not None:
            for key, binding in bindings.items():
                effect = _output_effect(binding, output, action.output_binding)
                if effect is not None:
                    updates[key] = Determination.from_bool(effect)

        for name in action.post:
            updates[name] = Determination.TRUE

        return state.with_updates(updates)


def _output_effect(binding: InputBinding, output: type, output_binding: str) -> bool | None:
    """Whether producing *output* under *output_binding* satisfies *binding*.

    ``None`` means the key is unaffected.
    """
    assignable = binding.type is None or issubclass(output, binding.type)
    if binding.last_result:
        return assignable
    if binding.name is not None:
        if binding.name != output_binding:
            return None
        return assignable
    return True if assignable else None

