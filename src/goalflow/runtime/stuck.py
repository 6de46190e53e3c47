"""Stuck policy — what to do when no plan reaches any goal."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action
    from goalflow.runtime.process import AgentProcess


class StuckAction(str, Enum):
    REPLAN = "replan"
    FAIL = "fail"
    CORRECTIVE = "corrective"


@dataclass(frozen=True)
class StuckDecision:
    """A stuck handler's verdict.

    * ``replan`` — plan again (the handler has usually changed the blackboard);
    * ``fail`` — end the run as FAILED;
    * ``corrective`` — run ``corrective_action`` once, then plan again.
    """

    action: StuckAction
    reason: str = ""
    corrective_action: Action | None = None

    @classmethod
    def replan(cls, reason: str = "") -> StuckDecision:
        return cls(StuckAction.REPLAN, reason)

    @classmethod
    def fail(cls, reason: str = "") -> StuckDecision:
        return cls(StuckAction.FAIL, reason)

    @classmethod
    def corrective(cls, action: Action, reason: str = "") -> StuckDecision:
        return cls(StuckAction.CORRECTIVE, reason, action)


@runtime_checkable
class StuckHandler(Protocol):
    """Decides how a stuck process proceeds.

    ``handle`` may be sync or async.
    """

    def handle(self, process: AgentProcess) -> StuckDecision | Awaitable[StuckDecision]:
        ...
