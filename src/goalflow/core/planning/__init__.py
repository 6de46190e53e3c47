"""Planning — world state, plans and the GOAP and utility planners."""

from __future__ import annotations

from typing import TYPE_CHECKING

from goalflow.core.planning.goap import GoapPlanner
from goalflow.core.planning.models import NoPlanFound, Plan, Planner, PlannerType, PlanResult
from goalflow.core.planning.utility import UtilityPlanner
from goalflow.core.planning.world_state import WorldState, WorldStateDeterminer

if TYPE_CHECKING:
    from goalflow.core.conditions.evaluator import ConditionEvaluator


def create_planner(planner_type: PlannerType | str, evaluator: ConditionEvaluator) -> Planner:
    """Instantiate the planner for *planner_type*.

    Raises:
        ValueError: If *planner_type* is not a known strategy.
    """
    kind = PlannerType(planner_type)
    if kind is PlannerType.UTILITY:
        return UtilityPlanner(evaluator)
    return GoapPlanner(evaluator)


__all__ = [
    "GoapPlanner",
    "NoPlanFound",
    "Plan",
    "PlanResult",
    "Planner",
    "PlannerType",
    "UtilityPlanner",
    "WorldState",
    "WorldStateDeterminer",
    "create_planner",
]
