"""Core Blackboard — shared mutable world state for a single agent run.

The Blackboard holds named bindings, anonymous type-addressed objects and
condition facts.  Actions read their inputs from it and write their outputs
back to it; planners derive world state from it.

Two binding classes exist:

* **default** bindings, removed by :meth:`Blackboard.clear_default_bindings`
  whenever an action produces a state-typed output;
* **protected** bindings, which survive such clears (identity, conversation
  context, configuration).

Every mutation happens under :attr:`Blackboard.lock` so that tool calls
running on worker threads can safely write concurrently.
"""

import logging
import threading
from collections.abc import Iterator, Mapping
from typing import Any, TypeVar

from goalflow.core.blackboard.errors import BindingError, BindingTypeError
from goalflow.core.blackboard.models import BlackboardSnapshot, Entry

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Blackboard:
    """Named, typed store of values for one run."""

    def __init__(
        self,
        bindings: Mapping[str, Any] | None = None,
        *,
        protected: Mapping[str, Any] | None = None,
    ) -> None:
        self.lock = threading.RLock()
        self._entries: list[Entry] = []
        self._bindings: dict[str, Entry] = {}
        self._conditions: dict[str, bool] = {}
        for name, value in (protected or {}).items():
            self.set(name, value, protected=True)
        for name, value in (bindings or {}).items():
            self.set(name, value)

    # ------------------------------------------------------------------
    # Named bindings
    # ------------------------------------------------------------------

    def get(self, name: str, default: Any = None) -> Any:
        """Return the value bound to *name*, or *default* if absent."""
        with self.lock:
            entry = self._bindings.get(name)
            return default if entry is None else entry.value

    def get_typed(self, name: str, cls: type[T]) -> T | None:
        """Return the value bound to *name* if it is an instance of *cls*.

        Returns ``None`` when *name* is unbound.

        Raises:
            BindingTypeError: If *name* is bound to a value of another type.
        """
        with self.lock:
            entry = self._bindings.get(name)
        if entry is None:
            return None
        if not isinstance(entry.value, cls):
            raise BindingTypeError(name, cls, type(entry.value))
        return entry.value

    def set(self, name: str, value: Any, *, protected: bool | None = None) -> None:
        """Bind *value* to *name*, overwriting any existing binding.

        ``protected=None`` keeps the flag of an existing binding (new
        bindings default to unprotected).  The value previously bound to
        *name* stays on the blackboard as an anonymous, unprotected object,
        so it remains addressable by type.

        Raises:
            BindingError: If *protected* contradicts the flag the binding
                was created with.
        """
        if not name:
            raise BindingError(name, "binding names must be non-empty")
        with self.lock:
            existing = self._bindings.get(name)
            if existing is not None:
                if protected is not None and protected != existing.protected:
                    raise BindingError(name, "protected status cannot change once bound")
                flag = existing.protected
                index = next(i for i, e in enumerate(self._entries) if e is existing)
                self._entries[index] = Entry(value=existing.value, added_at=existing.added_at)
            else:
                flag = bool(protected)
            entry = Entry(name=name, value=value, protected=flag)
            self._entries.append(entry)
            self._bindings[name] = entry
        logger.debug("Bound %s%s -> %s", name, " (protected)" if flag else "", type(value).__name__)

    def unset(self, name: str) -> None:
        """Remove the binding for *name* (no-op if absent)."""
        with self.lock:
            entry = self._bindings.pop(name, None)
            if entry is not None:
                self._entries.remove(entry)

    def is_protected(self, name: str) -> bool:
        with self.lock:
            entry = self._bindings.get(name)
            return entry is not None and entry.protected

    def names(self) -> list[str]:
        """Binding names, oldest first."""
        with self.lock:
            return [e.name for e in self._entries if e.name is not None]

    def protected_names(self) -> list[str]:
        with self.lock:
            return [e.name for e in self._entries if e.name is not None and e.protected]

    def __getitem__(self, name: str) -> Any:
        with self.lock:
            return self._bindings[name].value

    def __setitem__(self, name: str, value: Any) -> None:
        self.set(name, value)

    def __contains__(self, name: object) -> bool:
        with self.lock:
            return name in self._bindings

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.objects())

    # ------------------------------------------------------------------
    # Type-addressed objects
    # ------------------------------------------------------------------

    def add_object(self, value: Any) -> None:
        """Add an anonymous value, addressable only by its runtime type."""
        with self.lock:
            self._entries.append(Entry(value=value))
        logger.debug("Added object %s", type(value).__name__)

    def objects(self) -> list[Any]:
        """Snapshot of every value (bound and anonymous), oldest first."""
        with self.lock:
            return [e.value for e in self._entries]

    def get_by_type(self, cls: type[T]) -> T | None:
        """Return the most recently added value assignable to *cls*."""
        with self.lock:
            for entry in reversed(self._entries):
                if isinstance(entry.value, cls):
                    return entry.value
        return None

    def all_of_type(self, cls: type[T]) -> list[T]:
        """Return every value assignable to *cls*, oldest first."""
        with self.lock:
            return [e.value for e in self._entries if isinstance(e.value, cls)]

    def last_result(self) -> Any:
        """Return the most recently added value, or ``None`` if empty."""
        with self.lock:
            return self._entries[-1].value if self._entries else None

    def protected_values(self) -> list[Any]:
        with self.lock:
            return [e.value for e in self._entries if e.protected]

    # ------------------------------------------------------------------
    # Conditions
    # ------------------------------------------------------------------

    def set_condition(self, name: str, value: bool) -> None:
        """Record a condition fact directly on the blackboard."""
        with self.lock:
            self._conditions[name] = value

    def get_condition(self, name: str) -> bool | None:
        """Return a condition fact, or ``None`` if it was never set."""
        with self.lock:
            return self._conditions.get(name)

    # ------------------------------------------------------------------
    # State transitions
    # ------------------------------------------------------------------

    def clear_default_bindings(self) -> None:
        """Remove every non-protected binding, anonymous object and condition fact.

        Protected bindings survive unchanged.
        """
        with self.lock:
            removed = sum(1 for e in self._entries if not e.protected)
            self._entries = [e for e in self._entries if e.protected]
            self._bindings = {e.name: e for e in self._entries if e.name is not None}
            self._conditions.clear()
        logger.debug("Cleared %d default entries", removed)

    # ------------------------------------------------------------------
    # Diagnostics
    # ------------------------------------------------------------------

    def snapshot(self) -> BlackboardSnapshot:
        """Return an immutable view of the current contents."""
        with self.lock:
            return BlackboardSnapshot(
                bindings={e.name: e.value for e in self._entries if e.name is not None},
                protected=[e.name for e in self._entries if e.name is not None and e.protected],
                objects=[e.value for e in self._entries if e.name is None],
                conditions=dict(self._conditions),
            )

    def __repr__(self) -> str:
        return f"Blackboard({self.snapshot().describe()})"
