"""Conditions — three-valued facts, logical expressions and evaluator backends."""

from goalflow.core.conditions.errors import ConditionError, ExpressionSyntaxError, RuleSyntaxError
from goalflow.core.conditions.evaluator import (
    BlackboardConditionEvaluator,
    ConditionEvaluator,
    evaluate_expression,
)
from goalflow.core.conditions.models import (
    And,
    Condition,
    Determination,
    Fact,
    LogicalExpression,
    Not,
    Or,
)
from goalflow.core.conditions.parser import parse_expression
from goalflow.core.conditions.rules import Rule, RuleEngineEvaluator, parse_rules

__all__ = [
    "And",
    "BlackboardConditionEvaluator",
    "Condition",
    "ConditionError",
    "ConditionEvaluator",
    "Determination",
    "ExpressionSyntaxError",
    "Fact",
    "LogicalExpression",
    "Not",
    "Or",
    "Rule",
    "RuleEngineEvaluator",
    "RuleSyntaxError",
    "evaluate_expression",
    "parse_expression",
    "parse_rules",
]
