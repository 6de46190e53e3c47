"""GOAP planner — forward uniform-cost search over simulated world states.

Search nodes are ordered by ``(total cost, plan length, action names)``, so
the first node popped that satisfies the goal is the cheapest plan and ties
always resolve the same way.  An action may appear once per plan unless it
is marked ``can_rerun``; plan depth is bounded by the number of actions.
"""

from __future__ import annotations

import heapq
import logging
from itertools import count
from typing import TYPE_CHECKING

from goalflow.core.planning.models import NoPlanFound, Plan, PlanResult
from goalflow.core.planning.world_state import WorldState, WorldStateDeterminer
from goalflow.utils.telemetry import ATTR_PLANNER, get_tracer

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence

    from goalflow.core.actions.models import Action, Goal, InputBinding
    from goalflow.core.blackboard.blackboard import Blackboard
    from goalflow.core.conditions.evaluator import ConditionEvaluator

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class GoapPlanner:
    """Goal-oriented action planner.

    Satisfies the :class:`~goalflow.core.planning.models.Planner` protocol.
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
            span.set_attribute(ATTR_PLANNER, "goap")
            result = self._plan(blackboard, goals, actions)
            span.set_attribute("goalflow.plan.found", isinstance(result, Plan))
            return result

    def _plan(
        self,
        blackboard: Blackboard,
        goals: Sequence[Goal],
        actions: Sequence[Action],
    ) -> PlanResult:
        if not goals:
            return NoPlanFound(reason="no goals")

        state = self.determiner.current(blackboard, goals, actions)
        bindings = self.determiner.bindings_for(goals, actions)
        surviving = self.determiner.surviving_keys(blackboard, bindings)
        facts = self.determiner.fact_keys_for(actions)
        costs = {a.name: a.cost_for(blackboard) for a in actions}

        candidates: list[Plan] = []
        for goal in goals:
            plan = self.plan_to_goal(state, goal, actions, bindings, surviving, costs, facts)
            if plan is not None:
                candidates.append(plan)

        if not candidates:
            logger.debug("No plan from %r to any of %s", state, [g.name for g in goals])
            return NoPlanFound(goals=tuple(goals), reason="no action sequence reaches any goal")

        best = min(candidates, key=lambda p: (p.cost, -p.goal.value, p.goal.name))
        logger.debug("Chose plan %s", best)
        return best

    def plan_to_goal(
        self,
        start: WorldState,
        goal: Goal,
        actions: Sequence[Action],
        bindings: Mapping[str, InputBinding],
        surviving: set[str],
        costs: Mapping[str, float],
        facts: Iterable[str] = (),
    ) -> Plan | None:
        """Cheapest action sequence from *start* to *goal*, or ``None``."""
        if self.determiner.goal_satisfaction(start, goal).is_true:
            return Plan(goal=goal)

        ordered = sorted(actions, key=lambda a: a.name)
        max_depth = len(ordered)
        tiebreak = count()
        frontier: list[tuple[float, int, tuple[str, ...], int, WorldState, tuple[Action, ...]]] = [
            (0.0, 0, (), next(tiebreak), start, ())
        ]
        seen: set[tuple[WorldState, frozenset[str]]] = set()

        while frontier:
            cost, depth, names, _, state, path = heapq.heappop(frontier)
            if self.determiner.goal_satisfaction(state, goal).is_true:
                return Plan(actions=path, goal=goal, cost=cost)

            used = frozenset(a.name for a in path if not a.can_rerun)
            node = (state, used)
            if node in seen:
                continue
            seen.add(node)

            if depth >= max_depth:
                continue

            for action in ordered:
                if action.name in used:
                    continue
                if not self.determiner.is_applicable(state, action):
                    continue
                successor = self.determiner.apply(state, action, bindings, surviving, facts)
                if successor == state:
                    continue
                heapq.heappush(
                    frontier,
                    (
                        cost + costs[action.name],
                        depth + 1,
                        (*names, action.name),
                        next(tiebreak),
                        successor,
                        (*path, action),
                    ),
                )
        return None
