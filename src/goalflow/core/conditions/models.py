"""Condition models — three-valued determinations and logical expressions.

Evaluation follows Kleene's strong three-valued logic:

* ``And`` is FALSE if any term is FALSE, otherwise UNKNOWN if any term is
  UNKNOWN, otherwise TRUE.
* ``Or`` is TRUE if any term is TRUE, otherwise UNKNOWN if any term is
  UNKNOWN, otherwise FALSE.
* ``Not`` swaps TRUE and FALSE and leaves UNKNOWN alone.

An UNKNOWN leaf therefore never yields a definitive result it could have
flipped.
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict

from goalflow.core.blackboard.blackboard import Blackboard  # noqa: TC001


class Determination(str, Enum):
    """Result of evaluating a condition."""

    TRUE = "true"
    FALSE = "false"
    UNKNOWN = "unknown"

    @classmethod
    def from_bool(cls, value: bool | None) -> Determination:
        if value is None:
            return cls.UNKNOWN
        return cls.TRUE if value else cls.FALSE

    def negate(self) -> Determination:
        if self is Determination.TRUE:
            return Determination.FALSE
        if self is Determination.FALSE:
            return Determination.TRUE
        return Determination.UNKNOWN

    @property
    def is_true(self) -> bool:
        return self is Determination.TRUE


Determiner = Callable[[str], Determination]


class Fact(BaseModel):
    """A reference to a single named condition."""

    model_config = ConfigDict(frozen=True)

    name: str

    def evaluate(self, determine: Determiner) -> Determination:
        return determine(self.name)

    def condition_names(self) -> set[str]:
        return {self.name}

    def __str__(self) -> str:
        return self.name


class Not(BaseModel):
    """Negation of a single term."""

    model_config = ConfigDict(frozen=True)

    term: LogicalExpression

    def __init__(self, term: LogicalExpression | str, /, **data: Any) -> None:
        super().__init__(term=_coerce(term), **data)

    def evaluate(self, determine: Determiner) -> Determination:
        return self.term.evaluate(determine).negate()

    def condition_names(self) -> set[str]:
        return self.term.condition_names()

    def __str__(self) -> str:
        return f"not {_wrap(self.term)}"


class And(BaseModel):
    """Conjunction of terms."""

    model_config = ConfigDict(frozen=True)

    terms: tuple[LogicalExpression, ...]

    def __init__(self, *terms: LogicalExpression | str, **data: Any) -> None:
        super().__init__(terms=tuple(_coerce(t) for t in terms), **data)

    def evaluate(self, determine: Determiner) -> Determination:
        unknown = False
        for term in self.terms:
            result = term.evaluate(determine)
            if result is Determination.FALSE:
                return Determination.FALSE
            if result is Determination.UNKNOWN:
                unknown = True
        return Determination.UNKNOWN if unknown else Determination.TRUE

    def condition_names(self) -> set[str]:
        return set().union(*(t.condition_names() for t in self.terms))

    def __str__(self) -> str:
        return " and ".join(_wrap(t) for t in self.terms)


class Or(BaseModel):
    """Disjunction of terms."""

    model_config = ConfigDict(frozen=True)

    terms: tuple[LogicalExpression, ...]

    def __init__(self, *terms: LogicalExpression | str, **data: Any) -> None:
        super().__init__(terms=tuple(_coerce(t) for t in terms), **data)

    def evaluate(self, determine: Determiner) -> Determination:
        unknown = False
        for term in self.terms:
            result = term.evaluate(determine)
            if result is Determination.TRUE:
                return Determination.TRUE
            if result is Determination.UNKNOWN:
                unknown = True
        return Determination.UNKNOWN if unknown else Determination.FALSE

    def condition_names(self) -> set[str]:
        return set().union(*(t.condition_names() for t in self.terms))

    def __str__(self) -> str:
        return " or ".join(_wrap(t) for t in self.terms)


LogicalExpression = Fact | Not | And | Or

Not.model_rebuild()
And.model_rebuild()
Or.model_rebuild()


def _coerce(term: LogicalExpression | str) -> LogicalExpression:
    if isinstance(term, str):
        return Fact(name=term)
    return term


def _wrap(term: LogicalExpression) -> str:
    if isinstance(term, And | Or) and len(term.terms) > 1:
        return f"({term})"
    return str(term)


class Condition(BaseModel):
    """A registered, named condition computed from the blackboard.

    The predicate returns ``True``/``False``, or ``None`` when the answer
    cannot be determined.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    predicate: Callable[[Blackboard], bool | None]
    description: str = ""
