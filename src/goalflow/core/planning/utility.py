"""Utility planner — pick the single most valuable applicable action."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from goalflow.core.planning.models import NoPlanFound, Plan, PlanResult
from goalflow.core.planning.world_state import WorldStateDeterminer
from goalflow.utils.telemetry import ATTR_PLANNER, get_tracer

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goalflow.core.actions.models import Action, Goal
    from goalflow.core.blackboard.blackboard import Blackboard
    from goalflow.core.conditions.evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class UtilityPlanner:
    """Chooses, at each step, the applicable action with the highest ``value - cost``.

    Only actions that would change the world state are considered; ties go
    to the lexically smallest action name.  Plans always hold one action.
    """

    def __init__(self, evaluator: ConditionEvaluator) -> None:
        self.determiner = WorldStateDeterminer(evaluator)

    def plan(
        self,
        blackboard: Blackboard,
        goals: Sequence[Goal],
        actions: Sequence[Action],
    ) -> PlanResult:
        with _tracer.start_as_current_span("planner.plan") as span:
            span.set_attribute(ATTR_PLANNER, "utility")
            if not goals:
                return NoPlanFound(reason="no goals")

            state = self.determiner.current(blackboard, goals, actions)
            ranked_goals = sorted(goals, key=lambda g: (-g.value, g.name))
            for goal in ranked_goals:
                if self.determiner.goal_satisfaction(state, goal).is_true:
                    return Plan(goal=goal)

            bindings = self.determiner.bindings_for(goals, actions)
            surviving = self.determiner.surviving_keys(blackboard, bindings)
            facts = self.determiner.fact_keys_for(actions)

            best: tuple[float, Action] | None = None
            for action in sorted(actions, key=lambda a: a.name):
                if not self.determiner.is_applicable(state, action):
                    continue
                successor = self.determiner.apply(state, action, bindings, surviving, facts)
                if successor == state:
                    continue
                score = action.value_for(blackboard) - action.cost_for(blackboard)
                if best is None or score > best[0]:
                    best = (score, action)

            if best is None:
                return NoPlanFound(goals=tuple(goals), reason="no applicable action")

            score, action = best
            logger.debug("Utility chose %s (score %g)", action.name, score)
            span.set_attribute("goalflow.plan.found", True)
            return Plan(actions=(action,), goal=ranked_goals[0], cost=action.cost_for(blackboard))
