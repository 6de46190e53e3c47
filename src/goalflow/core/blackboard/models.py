"""Blackboard data models — entries, state-type marking and diagnostic snapshots.

A *state* type is a class whose instances represent a phase of an agent.
When an action produces a state-typed value, every non-protected entry on
the blackboard is cleared before the value is bound.
"""

from datetime import UTC, datetime
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BINDING = "it"

_STATE_MARKER = "__goalflow_state__"

T = TypeVar("T", bound=type)


def state(cls: T) -> T:
    """Class decorator marking *cls* (and its subclasses) as a state type."""
    setattr(cls, _STATE_MARKER, True)
    return cls


def is_state_type(cls: type | None) -> bool:
    """Return ``True`` if *cls* was marked with :func:`state`."""
    if cls is None:
        return False
    return bool(getattr(cls, _STATE_MARKER, False))


def type_key(cls: type) -> str:
    """Stable, qualified name for *cls* used in condition keys."""
    return f"{cls.__module__}.{cls.__qualname__}"


class Entry(BaseModel):
    """A single value held by the blackboard.

    ``name`` is ``None`` for anonymous, type-addressed objects.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    name: str | None = None
    value: Any
    protected: bool = False
    added_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


class BlackboardSnapshot(BaseModel):
    """Immutable diagnostic view of a blackboard at one point in time."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    bindings: dict[str, Any] = {}
    protected: list[str] = []
    objects: list[Any] = []
    conditions: dict[str, bool] = {}

    def describe(self) -> str:
        """Short human-readable summary."""
        names = ", ".join(
            f"{n}*" if n in self.protected else n for n in self.bindings
        )
        return (
            f"bindings=[{names}] objects={len(self.objects)} "
            f"conditions={self.conditions}"
        )
