"""Tests for ToolLoop — sequential and parallel dispatch with failure isolation."""

import asyncio
import threading
import time
from typing import Any

import pytest

from goalflow.core.actions import ReplanRequested
from goalflow.core.blackboard import Blackboard
from goalflow.core.interface import CanonicalMessage, ConversationHistory, ToolCall
from goalflow.toolloop import (
    ExecutorType,
    ParallelModeConfig,
    Tool,
    TokenUsage,
    ToolCallRecord,
    ToolCallStatus,
    ToolContext,
    ToolDispatcher,
    ToolLoop,
    ToolLoopCallback,
    ToolLoopConfig,
    ToolLoopIncompleteError,
    ToolLoopMode,
    ToolLoopOutcome,
    ToolOutput,
)


class ScriptedTransport:
    """Returns canned replies and records what it was sent."""

    def __init__(self, *replies: CanonicalMessage) -> None:
        self.replies = list(replies)
        self.calls: list[tuple[int, Any]] = []

    async def generate(
        self, history: ConversationHistory, tools: list[dict[str, Any]] | None = None
    ) -> CanonicalMessage:
        self.calls.append((len(history), tools))
        return self.replies.pop(0)


class LoopingTransport:
    """Asks for the same tool forever."""

    def __init__(self) -> None:
        self.count = 0

    async def generate(
        self, history: ConversationHistory, tools: list[dict[str, Any]] | None = None
    ) -> CanonicalMessage:
        self.count += 1
        return CanonicalMessage.assistant(tool_calls=[ToolCall(name="ping")])


class Receipt:
    pass


def _calls(*names: str) -> CanonicalMessage:
    return CanonicalMessage.assistant(
        tool_calls=[ToolCall(id=f"c{i}", name=n) for i, n in enumerate(names)]
    )


def _ok(args: dict, ctx: ToolContext) -> str:
    return "ok"


def _boom(args: dict, ctx: ToolContext) -> None:
    raise RuntimeError("boom")


async def _slow(args: dict, ctx: ToolContext) -> str:
    await asyncio.sleep(5)
    return "late"


def _history() -> ConversationHistory:
    return ConversationHistory(messages=[CanonicalMessage.user("start")])


def _loop(
    transport: Any, *tools: Tool, config: ToolLoopConfig | None = None, **kw: Any
) -> ToolLoop:
    return ToolLoop(transport, ToolDispatcher(tools), config=config, **kw)


PARALLEL = ToolLoopMode.PARALLEL


class TestCompletion:
    async def test_answer_without_tools(self) -> None:
        transport = ScriptedTransport(CanonicalMessage.assistant("42"))
        result = await _loop(transport).execute(_history(), output_parser=int)

        assert result.outcome is ToolLoopOutcome.COMPLETED
        assert result.iterations == 1
        assert result.output == 42
        assert result.require_output() == 42
        assert result.text == "42"
        assert transport.calls == [(1, None)]
        assert result.usage is None

    async def test_tool_schemas_sent(self) -> None:
        transport = ScriptedTransport(_calls("ok"), CanonicalMessage.assistant("done"))
        result = await _loop(transport, Tool(name="ok", handler=_ok)).execute(_history())

        assert result.outcome is ToolLoopOutcome.COMPLETED
        assert result.iterations == 2
        assert transport.calls[0][1][0]["function"]["name"] == "ok"
        assert [m.role for m in result.history] == ["user", "assistant", "tool", "assistant"]

    async def test_max_iterations(self) -> None:
        transport = LoopingTransport()
        loop = _loop(
            transport, Tool(name="ping", handler=_ok), config=ToolLoopConfig(max_iterations=3)
        )
        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.MAX_ITERATIONS
        assert result.iterations == 3
        assert transport.count == 3
        assert len(result.records) == 3
        assert result.final_message.role == "assistant"
        assert result.final_message.tool_calls[0].name == "ping"
        with pytest.raises(ToolLoopIncompleteError, match="max_iterations after 3"):
            result.require_output()

    async def test_cancelled_before_start(self) -> None:
        event = threading.Event()
        event.set()
        transport = ScriptedTransport()
        result = await _loop(transport, cancel_event=event).execute(_history())

        assert result.outcome is ToolLoopOutcome.CANCELLED
        assert result.iterations == 0
        assert transport.calls == []


class TestSequential:
    async def test_failures_are_isolated(self) -> None:
        transport = ScriptedTransport(
            _calls("boom", "missing", "ok"), CanonicalMessage.assistant("recovered")
        )
        loop = _loop(transport, Tool(name="boom", handler=_boom), Tool(name="ok", handler=_ok))
        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.COMPLETED
        assert [r.status for r in result.records] == [
            ToolCallStatus.ERROR,
            ToolCallStatus.NOT_FOUND,
            ToolCallStatus.SUCCESS,
        ]
        tool_messages = [m for m in result.history if m.role == "tool"]
        assert [m.tool_call_id for m in tool_messages] == ["c0", "c1", "c2"]
        assert tool_messages[0].text == "Error (error): boom"
        assert tool_messages[0].metadata["is_error"] is True
        assert tool_messages[2].text == "ok"

    async def test_timeout(self) -> None:
        seen: list[ToolContext] = []

        async def slow(args: dict, ctx: ToolContext) -> str:
            seen.append(ctx)
            await asyncio.sleep(5)
            return "late"

        transport = ScriptedTransport(_calls("slow"), CanonicalMessage.assistant("done"))
        loop = _loop(
            transport, Tool(name="slow", handler=slow), config=ToolLoopConfig(tool_timeout=0.05)
        )
        result = await loop.execute(_history())

        assert result.records[0].status is ToolCallStatus.TIMEOUT
        assert seen[0].cancelled

    async def test_replan_stops_batch(self) -> None:
        def request_replan(args: dict, ctx: ToolContext) -> ReplanRequested:
            return ReplanRequested(reason="inventory changed")

        transport = ScriptedTransport(_calls("replan", "ok"))
        loop = _loop(
            transport, Tool(name="replan", handler=request_replan), Tool(name="ok", handler=_ok)
        )
        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.REPLAN_REQUESTED
        assert result.replan is not None
        assert result.replan.reason == "inventory changed"
        assert len(result.records) == 1
        assert result.history.last.text == "Replan requested: inventory changed"

    async def test_artifact_goes_to_blackboard(self) -> None:
        receipt = Receipt()

        def store(args: dict, ctx: ToolContext) -> ToolOutput:
            return ToolOutput(content={"stored": True}, artifact=receipt)

        board = Blackboard()
        transport = ScriptedTransport(_calls("store"), CanonicalMessage.assistant("done"))
        loop = _loop(transport, Tool(name="store", handler=store), blackboard=board)
        result = await loop.execute(_history())

        assert board.get_by_type(Receipt) is receipt
        assert result.records[0].content == '{"stored": true}'


class TestParallel:
    async def test_mixed_batch_keeps_request_order(self) -> None:
        config = ToolLoopConfig(mode=PARALLEL, parallel=ParallelModeConfig(per_tool_timeout=0.1))
        transport = ScriptedTransport(
            _calls("slow", "boom", "ok"), CanonicalMessage.assistant("done")
        )
        loop = _loop(
            transport,
            Tool(name="slow", handler=_slow),
            Tool(name="boom", handler=_boom),
            Tool(name="ok", handler=_ok),
            config=config,
        )
        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.COMPLETED
        assert [r.status for r in result.records] == [
            ToolCallStatus.TIMEOUT,
            ToolCallStatus.ERROR,
            ToolCallStatus.SUCCESS,
        ]
        tool_ids = [m.tool_call_id for m in result.history if m.role == "tool"]
        assert tool_ids == ["c0", "c1", "c2"]

    async def test_batch_timeout(self) -> None:
        config = ToolLoopConfig(
            mode=PARALLEL,
            parallel=ParallelModeConfig(per_tool_timeout=10, batch_timeout=0.1),
        )
        transport = ScriptedTransport(_calls("ok", "slow"), CanonicalMessage.assistant("done"))
        loop = _loop(
            transport,
            Tool(name="ok", handler=_ok),
            Tool(name="slow", handler=_slow),
            config=config,
        )
        started = time.monotonic()
        result = await loop.execute(_history())

        assert time.monotonic() - started < 2
        assert [r.status for r in result.records] == [
            ToolCallStatus.SUCCESS,
            ToolCallStatus.TIMEOUT,
        ]
        assert result.records[1].error == "batch timed out after 0.1s"

    async def test_bounded_pool_limits_concurrency(self) -> None:
        active = 0
        peak = 0

        async def tracked(args: dict, ctx: ToolContext) -> str:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return "ok"

        config = ToolLoopConfig(
            mode=PARALLEL,
            parallel=ParallelModeConfig(executor_type=ExecutorType.BOUNDED, pool_size=2),
        )
        transport = ScriptedTransport(_calls(*["t"] * 5), CanonicalMessage.assistant("done"))
        result = await _loop(transport, Tool(name="t", handler=tracked), config=config).execute(
            _history()
        )

        assert all(r.ok for r in result.records)
        assert peak == 2

    async def test_unbounded_runs_all_at_once(self) -> None:
        active = 0
        peak = 0

        async def tracked(args: dict, ctx: ToolContext) -> str:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.02)
            active -= 1
            return "ok"

        config = ToolLoopConfig(
            mode=PARALLEL,
            parallel=ParallelModeConfig(executor_type=ExecutorType.UNBOUNDED, pool_size=1),
        )
        transport = ScriptedTransport(_calls(*["t"] * 4), CanonicalMessage.assistant("done"))
        await _loop(transport, Tool(name="t", handler=tracked), config=config).execute(_history())

        assert peak == 4

    async def test_fixed_pool_runs_sync_handlers_on_dedicated_threads(self) -> None:
        def where(args: dict, ctx: ToolContext) -> str:
            return threading.current_thread().name

        config = ToolLoopConfig(
            mode=PARALLEL,
            parallel=ParallelModeConfig(executor_type=ExecutorType.FIXED, pool_size=2),
        )
        transport = ScriptedTransport(_calls("where", "where"), CanonicalMessage.assistant("done"))
        result = await _loop(transport, Tool(name="where", handler=where), config=config).execute(
            _history()
        )

        assert all(r.content.startswith("goalflow-tool") for r in result.records)

    async def test_first_replan_wins(self) -> None:
        def replan_a(args: dict, ctx: ToolContext) -> ReplanRequested:
            return ReplanRequested(reason="a")

        def replan_b(args: dict, ctx: ToolContext) -> ReplanRequested:
            return ReplanRequested(reason="b")

        config = ToolLoopConfig(mode=PARALLEL)
        transport = ScriptedTransport(_calls("a", "b"))
        loop = _loop(
            transport,
            Tool(name="a", handler=replan_a),
            Tool(name="b", handler=replan_b),
            config=config,
        )
        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.REPLAN_REQUESTED
        assert result.replan.reason == "a"
        assert len(result.records) == 2


class RecordingCallback(ToolLoopCallback):
    def __init__(self) -> None:
        self.events: list[tuple[str, int, Any]] = []

    def before_model_call(self, history: ConversationHistory, iteration: int) -> None:
        self.events.append(("before", iteration, len(history)))

    def after_model_call(
        self, reply: CanonicalMessage, iteration: int, usage: TokenUsage | None
    ) -> None:
        self.events.append(("model", iteration, None if usage is None else usage.total_tokens))

    def after_tool_result(self, record: ToolCallRecord, iteration: int) -> None:
        self.events.append(("tool", iteration, record.call.name))

    def after_iteration(self, records: list[ToolCallRecord], iteration: int) -> None:
        self.events.append(("iteration", iteration, len(records)))


def _usage(prompt: int, completion: int) -> dict[str, int]:
    return {
        "prompt_tokens": prompt,
        "completion_tokens": completion,
        "total_tokens": prompt + completion,
    }


class TestCallbacksAndUsage:
    async def test_usage_summed_across_iterations(self) -> None:
        transport = ScriptedTransport(
            CanonicalMessage.assistant(
                tool_calls=[ToolCall(id="c0", name="ok")], usage=_usage(10, 2)
            ),
            CanonicalMessage.assistant("done", usage=_usage(15, 3)),
        )
        result = await _loop(transport, Tool(name="ok", handler=_ok)).execute(_history())

        assert result.usage == TokenUsage(prompt_tokens=25, completion_tokens=5, total_tokens=30)

    async def test_callbacks_observe_each_step(self) -> None:
        callback = RecordingCallback()
        transport = ScriptedTransport(
            _calls("ok", "boom"),
            CanonicalMessage.assistant("done", usage=_usage(4, 1)),
        )
        loop = _loop(
            transport,
            Tool(name="ok", handler=_ok),
            Tool(name="boom", handler=_boom),
            callbacks=[callback],
        )

        result = await loop.execute(_history())

        assert result.outcome is ToolLoopOutcome.COMPLETED
        assert callback.events == [
            ("before", 1, 1),
            ("model", 1, None),
            ("tool", 1, "ok"),
            ("tool", 1, "boom"),
            ("iteration", 1, 2),
            ("before", 2, 4),
            ("model", 2, 5),
        ]

    def test_base_callback_is_a_no_op(self) -> None:
        callback = ToolLoopCallback()
        callback.before_model_call(_history(), 1)
        callback.after_iteration([], 1)
