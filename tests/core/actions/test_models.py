"""Tests for action, goal and agent descriptors."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from goalflow.core.actions import Action, Agent, Goal, InputBinding, RetryPolicy
from goalflow.core.blackboard import Blackboard, state
from goalflow.core.conditions import (
    BlackboardConditionEvaluator,
    Condition,
    Determination,
    Fact,
    Not,
)


class Query:
    pass


class Report:
    pass


@state
class Reviewing:
    pass


def _noop(ctx: object) -> None:
    return None


class TestRetryPolicy:
    def test_defaults(self) -> None:
        policy = RetryPolicy()
        assert policy.max_attempts == 1
        assert policy.delay_before(1) == 0
        assert policy.delay_before(2) == 0

    def test_exponential_backoff(self) -> None:
        policy = RetryPolicy(max_attempts=4, backoff=0.5, backoff_multiplier=2.0)
        assert [policy.delay_before(n) for n in (1, 2, 3, 4)] == [0.0, 0.5, 1.0, 2.0]

    def test_max_backoff_caps(self) -> None:
        policy = RetryPolicy(max_attempts=5, backoff=1.0, backoff_multiplier=10.0, max_backoff=3.0)
        assert policy.delay_before(4) == 3.0

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_attempts": 0}, {"backoff": -1.0}, {"backoff_multiplier": 0.5}],
    )
    def test_invalid(self, kwargs: dict[str, float]) -> None:
        with pytest.raises(ValidationError):
            RetryPolicy(**kwargs)


class TestInputBinding:
    def test_requires_name_or_type(self) -> None:
        with pytest.raises(ValidationError):
            InputBinding()

    def test_last_result_requires_type(self) -> None:
        with pytest.raises(ValidationError):
            InputBinding(name="x", last_result=True)

    def test_condition_keys(self) -> None:
        assert InputBinding(name="q").condition_key == "bound:q"
        assert InputBinding(type=Query).condition_key == f"has:{__name__}.Query"
        assert InputBinding(name="q", type=Query).condition_key == f"bound:q:{__name__}.Query"
        assert InputBinding(type=Query, last_result=True).condition_key == f"last:{__name__}.Query"

    def test_labels(self) -> None:
        assert InputBinding(name="q", type=Query).label == "q"
        assert InputBinding(type=Query).label == "Query"

    def test_resolve_by_type(self) -> None:
        query = Query()
        board = Blackboard()
        assert InputBinding(type=Query).resolve(board) == (False, None)
        board.add_object(query)
        assert InputBinding(type=Query).resolve(board) == (True, query)

    def test_resolve_by_name_checks_type(self) -> None:
        board = Blackboard({"q": "text"})
        assert InputBinding(name="q").resolve(board) == (True, "text")
        assert InputBinding(name="q", type=Query).resolve(board) == (False, None)

    def test_resolve_last_result(self) -> None:
        query = Query()
        board = Blackboard()
        board.add_object(query)
        assert InputBinding(type=Query, last_result=True).resolve(board) == (True, query)
        board.set("other", 1)
        assert InputBinding(type=Query, last_result=True).resolve(board) == (False, None)


class TestAction:
    def test_inputs_coerced(self) -> None:
        action = Action(name="a", run=_noop, inputs=[Query, "q"])
        assert action.inputs == (InputBinding(type=Query), InputBinding(name="q"))

    def test_pre_parsed_from_strings(self) -> None:
        action = Action(name="a", run=_noop, pre="ready and not blocked")
        assert action.pre[0].condition_names() == {"ready", "blocked"}
        action = Action(name="b", run=_noop, pre=["x", Not("y")])
        assert action.pre == (Fact(name="x"), Not("y"))

    def test_precondition_keys(self) -> None:
        action = Action(name="a", run=_noop, inputs=[Query], pre="ready")
        assert action.precondition_keys() == {f"has:{__name__}.Query", "ready"}

    def test_clears_blackboard(self) -> None:
        assert not Action(name="a", run=_noop, output_type=Report).clears_blackboard
        assert Action(name="a", run=_noop, output_type=Reviewing).clears_blackboard
        assert Action(name="a", run=_noop, clears_state=True).clears_blackboard
        assert not Action(
            name="a", run=_noop, output_type=Reviewing, clears_state=False
        ).clears_blackboard

    def test_resolve_inputs(self) -> None:
        query = Query()
        action = Action(name="a", run=_noop, inputs=[Query, "limit"])
        board = Blackboard({"limit": 5})
        assert action.resolve_inputs(board) is None
        board.add_object(query)
        assert action.resolve_inputs(board) == {"Query": query, "limit": 5}

    def test_cost_and_value(self) -> None:
        board = Blackboard({"n": 4})
        assert Action(name="a", run=_noop, cost=2).cost_for(board) == 2.0
        dynamic = Action(name="a", run=_noop, cost=lambda bb: bb.get("n") * 2, value=1.5)
        assert dynamic.cost_for(board) == 8.0
        assert dynamic.value_for(board) == 1.5

    def test_frozen(self) -> None:
        action = Action(name="a", run=_noop)
        with pytest.raises(ValidationError):
            action.name = "b"  # type: ignore[misc]

    def test_str(self) -> None:
        assert str(Action(name="fetch", run=_noop)) == "fetch"


class TestGoal:
    def test_requires_target(self) -> None:
        with pytest.raises(ValidationError):
            Goal(name="g")

    def test_condition_parsed(self) -> None:
        goal = Goal(name="g", condition="done and not failed")
        assert goal.condition_keys() == {"done", "failed"}

    def test_satisfied_by_type(self) -> None:
        goal = Goal(name="g", satisfied_by=Report)
        evaluator = BlackboardConditionEvaluator()
        board = Blackboard()
        assert goal.is_satisfied(board, evaluator) is Determination.FALSE
        board.add_object(Report())
        assert goal.is_satisfied(board, evaluator) is Determination.TRUE

    def test_type_and_condition(self) -> None:
        goal = Goal(name="g", satisfied_by=Report, condition="approved")
        evaluator = BlackboardConditionEvaluator()
        board = Blackboard()
        board.add_object(Report())
        assert goal.is_satisfied(board, evaluator) is Determination.UNKNOWN
        board.set_condition("approved", True)
        assert goal.is_satisfied(board, evaluator) is Determination.TRUE


class TestAgent:
    def test_valid(self) -> None:
        agent = Agent(
            name="writer",
            actions=[Action(name="a", run=_noop), Action(name="fix", run=_noop)],
            goals=[Goal(name="g", satisfied_by=Report)],
            conditions=[Condition(name="c", predicate=lambda bb: True)],
        )
        assert agent.action("fix").name == "fix"
        with pytest.raises(KeyError):
            agent.action("missing")

    def test_duplicate_action_names(self) -> None:
        with pytest.raises(ValidationError, match="duplicate action names: a"):
            Agent(
                name="x",
                actions=[Action(name="a", run=_noop), Action(name="a", run=_noop)],
                goals=[Goal(name="g", satisfied_by=Report)],
            )

    def test_unknown_recovery(self) -> None:
        with pytest.raises(ValidationError, match="unknown recovery"):
            Agent(
                name="x",
                actions=[Action(name="a", run=_noop, recovery="nope")],
                goals=[Goal(name="g", satisfied_by=Report)],
            )

    def test_requires_goal(self) -> None:
        with pytest.raises(ValidationError, match="no goals"):
            Agent(name="x", actions=[], goals=[])
