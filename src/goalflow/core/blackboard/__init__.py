"""Blackboard — shared world state for a single agent run."""

from goalflow.core.blackboard.blackboard import Blackboard
from goalflow.core.blackboard.errors import BindingError, BindingTypeError, BlackboardError
from goalflow.core.blackboard.models import (
    DEFAULT_BINDING,
    BlackboardSnapshot,
    Entry,
    is_state_type,
    state,
    type_key,
)

__all__ = [
    "DEFAULT_BINDING",
    "BindingError",
    "BindingTypeError",
    "Blackboard",
    "BlackboardError",
    "BlackboardSnapshot",
    "Entry",
    "is_state_type",
    "state",
    "type_key",
]
