"""Planning models — plans, planning failures and the planner contract."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict

from goalflow.core.actions.models import Action, Goal  # noqa: TC001

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goalflow.core.blackboard.blackboard import Blackboard


class PlannerType(str, Enum):
    """Planning strategy, fixed for the lifetime of a run."""

    GOAP = "goap"
    UTILITY = "utility"


class Plan(BaseModel):
    """An ordered sequence of actions expected to achieve *goal*."""

    model_config = ConfigDict(frozen=True)

    actions: tuple[Action, ...] = ()
    goal: Goal
    cost: float = 0.0

    @property
    def is_complete(self) -> bool:
        """An empty plan means the goal is already satisfied."""
        return not self.actions

    @property
    def first(self) -> Action | None:
        return self.actions[0] if self.actions else None

    def action_names(self) -> list[str]:
        return [a.name for a in self.actions]

    def __str__(self) -> str:
        steps = " -> ".join(self.action_names()) or "(satisfied)"
        return f"{self.goal.name}: {steps} [cost={self.cost:g}]"


class NoPlanFound(BaseModel):
    """No sequence of available actions reaches any goal."""

    model_config = ConfigDict(frozen=True)

    goals: tuple[Goal, ...] = ()
    reason: str = ""

    def goal_names(self) -> list[str]:
        return [g.name for g in self.goals]


PlanResult = Plan | NoPlanFound


@runtime_checkable
class Planner(Protocol):
    """Derives the next plan from the current blackboard."""

    def plan(
        self,
        blackboard: Blackboard,
        goals: Sequence[Goal],
        actions: Sequence[Action],
    ) -> PlanResult:
        """Return a plan toward the best reachable goal, or :class:`NoPlanFound`."""
        ...
