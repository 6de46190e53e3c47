"""Rule-engine condition backend.

Conditions are derived from declarative Horn-style rules plus facts
extracted from blackboard objects::

    can_approve :- is_manager, not over_budget
    is_manager :- role_manager or role_director
    ready

Each non-empty line holds one rule; a trailing ``.`` is optional and ``%``
or ``#`` start a comment.  Commas in a body mean ``and``.  A line without
``:-`` declares an unconditional fact.

Resolution of a name:

1. If rules define it, the result is the OR of its rule bodies.
2. Otherwise it is TRUE if any fact extractor produced it.
3. Otherwise the fallback evaluator decides (UNKNOWN stays UNKNOWN).

Recursive definitions that loop back on themselves resolve to UNKNOWN.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict

from goalflow.core.conditions.errors import ExpressionSyntaxError, RuleSyntaxError
from goalflow.core.conditions.evaluator import BlackboardConditionEvaluator, ConditionEvaluator
from goalflow.core.conditions.models import Determination, LogicalExpression
from goalflow.core.conditions.parser import parse_expression

if TYPE_CHECKING:
    from goalflow.core.blackboard.blackboard import Blackboard

logger = logging.getLogger(__name__)

FactExtractor = Callable[[Any], Iterable[str]]

_NAME = re.compile(r"[A-Za-z_][\w.:\-]*")


class Rule(BaseModel):
    """``head :- body``; a rule without a body is an unconditional fact."""

    model_config = ConfigDict(frozen=True)

    head: str
    body: LogicalExpression | None = None

    def __str__(self) -> str:
        if self.body is None:
            return self.head
        return f"{self.head} :- {self.body}"


def parse_rules(text: str) -> list[Rule]:
    """Parse a rule program, one rule per line.

    Raises:
        RuleSyntaxError: On a malformed line.
    """
    rules: list[Rule] = []
    for raw in text.splitlines():
        line = raw.split("%", 1)[0].split("#", 1)[0].strip()
        if line.endswith("."):
            line = line[:-1].rstrip()
        if not line:
            continue

        head, sep, body = line.partition(":-")
        head = head.strip()
        if not _NAME.fullmatch(head):
            raise RuleSyntaxError(raw, "rule head must be a single condition name")
        if not sep:
            rules.append(Rule(head=head))
            continue
        if not body.strip():
            raise RuleSyntaxError(raw, "empty rule body")
        try:
            expression = parse_expression(body.replace(",", " and "))
        except ExpressionSyntaxError as exc:
            raise RuleSyntaxError(raw, exc.detail) from exc
        rules.append(Rule(head=head, body=expression))
    return rules


class RuleEngineEvaluator:
    """Derives conditions from rules and blackboard-extracted facts.

    Satisfies the :class:`ConditionEvaluator` protocol.
    """

    def __init__(
        self,
        rules: Iterable[Rule] | str,
        *,
        fact_extractors: Iterable[FactExtractor] = (),
        fallback: ConditionEvaluator | None = None,
    ) -> None:
        parsed = parse_rules(rules) if isinstance(rules, str) else list(rules)
        self._rules: dict[str, list[Rule]] = {}
        for rule in parsed:
            self._rules.setdefault(rule.head, []).append(rule)
        self._extractors = list(fact_extractors)
        self._fallback = fallback or BlackboardConditionEvaluator()

    @property
    def rules(self) -> list[Rule]:
        return [r for group in self._rules.values() for r in group]

    def extract_facts(self, blackboard: Blackboard) -> set[str]:
        """Run every fact extractor over every blackboard object."""
        facts: set[str] = set()
        for obj in blackboard.objects():
            for extractor in self._extractors:
                facts.update(extractor(obj))
        return facts

    def evaluate(self, condition_name: str, blackboard: Blackboard) -> Determination:
        facts = self.extract_facts(blackboard)
        return self._resolve(condition_name, blackboard, facts, frozenset())

    def _resolve(
        self,
        name: str,
        blackboard: Blackboard,
        facts: set[str],
        visiting: frozenset[str],
    ) -> Determination:
        if name in visiting:
            logger.warning("Cyclic rule definition for %s; treating as UNKNOWN", name)
            return Determination.UNKNOWN

        rules = self._rules.get(name)
        if not rules:
            if name in facts:
                return Determination.TRUE
            return self._fallback.evaluate(name, blackboard)

        inner = visiting | {name}
        unknown = False
        for rule in rules:
            if rule.body is None:
                return Determination.TRUE
            result = rule.body.evaluate(
                lambda leaf: self._resolve(leaf, blackboard, facts, inner)
            )
            if result is Determination.TRUE:
                return Determination.TRUE
            if result is Determination.UNKNOWN:
                unknown = True
        if unknown:
            logger.debug("Rules for %s contain unresolved conditions", name)
            return Determination.UNKNOWN
        return Determination.FALSE
