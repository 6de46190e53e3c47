"""Action outcomes — the tagged result of invoking an action.

The execution loop dispatches on these explicitly; replanning and waiting
for input are ordinary results, not exceptions.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any
from uuid import uuid4

from goalflow.core.blackboard.blackboard import Blackboard  # noqa: TC001


@dataclass(frozen=True)
class Completed:
    """The action produced *value* (``None`` when it declares no output)."""

    value: Any = None


@dataclass(frozen=True)
class ReplanRequested:
    """Discard the current plan and plan again after applying *update*.

    Does not count as a failure and does not consume retry budget.
    """

    reason: str = ""
    update: Callable[[Blackboard], None] | None = None

    def apply(self, blackboard: Blackboard) -> None:
        """Run the mutation callback while holding the blackboard lock."""
        if self.update is None:
            return
        with blackboard.lock:
            self.update(blackboard)


@dataclass(frozen=True)
class AwaitRequest:
    """A request for a value supplied from outside the run.

    ``binding`` names where the supplied value is bound; ``None`` means the
    awaiting action's own output binding.
    """

    prompt: str = ""
    expected_type: type | None = None
    binding: str | None = None
    id: str = field(default_factory=lambda: uuid4().hex[:12])

    def accepts(self, value: Any) -> bool:
        return self.expected_type is None or isinstance(value, self.expected_type)


@dataclass(frozen=True)
class Awaiting:
    """The action cannot complete until *request* is answered."""

    request: AwaitRequest


@dataclass(frozen=True)
class Failed:
    """The action raised *error*."""

    error: BaseException


ActionOutcome = Completed | ReplanRequested | Awaiting | Failed

OUTCOME_TYPES = (Completed, ReplanRequested, Awaiting, Failed)
