"""ToolLoop — drive a model through tool calls until it produces an answer.

Each iteration sends the history to the model.  A reply without tool calls
ends the loop; otherwise every requested call is dispatched and its result
appended to the history as a tool message, in the order the model asked for
them, whatever order they finished in.

Failures are isolated per call: an error, a timeout or an unknown tool is
reported back to the model for that call only, and its siblings still run.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Executor, ThreadPoolExecutor
from typing import TYPE_CHECKING, Any

from goalflow.core.actions.outcomes import ReplanRequested
from goalflow.core.blackboard.blackboard import Blackboard
from goalflow.core.interface.models import CanonicalMessage, ConversationHistory, ToolCall
from goalflow.toolloop.config import ExecutorType, ToolLoopConfig, ToolLoopMode
from goalflow.toolloop.errors import ToolExecutionError, ToolNotFoundError
from goalflow.toolloop.models import (
    TokenUsage,
    ToolCallRecord,
    ToolCallStatus,
    ToolContext,
    ToolLoopOutcome,
    ToolLoopResult,
    ToolOutput,
    render_content,
)
from goalflow.utils.telemetry import (
    ATTR_TOOL_NAME,
    ATTR_TOOL_STATUS,
    ATTR_TOOLLOOP_ITERATION,
    ATTR_TOOLLOOP_MODE,
    ATTR_TOOLLOOP_OUTCOME,
    get_tracer,
)

if TYPE_CHECKING:
    from collections.abc import Sequence

    from goalflow.toolloop.callbacks import ToolLoopCallback
    from goalflow.toolloop.dispatcher import ToolDispatcher
    from goalflow.toolloop.models import ModelTransport

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class ToolLoop:
    """Runs the model/tool conversation for one action.

    Usage::

        loop = ToolLoop(transport, ToolDispatcher(tools), config=config, blackboard=bb)
        result = await loop.execute(history, output_parser=Report.model_validate_json)
        if result.outcome is ToolLoopOutcome.COMPLETED:
            report = result.output
    """

    def __init__(
        self,
        transport: ModelTransport,
        dispatcher: ToolDispatcher,
        *,
        config: ToolLoopConfig | None = None,
        blackboard: Blackboard | None = None,
        cancel_event: threading.Event | None = None,
        callbacks: Sequence[ToolLoopCallback] = (),
    ) -> None:
        self.transport = transport
        self.dispatcher = dispatcher
        self.config = config or ToolLoopConfig()
        self.blackboard = blackboard if blackboard is not None else Blackboard()
        self.cancel_event = cancel_event or threading.Event()
        self.callbacks = list(callbacks)

    async def execute(
        self,
        history: ConversationHistory,
        *,
        output_parser: Callable[[str], Any] | None = None,
    ) -> ToolLoopResult:
        """Run until the model answers, a tool asks to replan, or iterations run out."""
        with _tracer.start_as_current_span("toolloop.execute") as span:
            span.set_attribute(ATTR_TOOLLOOP_MODE, self.config.mode.value)
            result = await self._run(history, output_parser)
            span.set_attribute(ATTR_TOOLLOOP_OUTCOME, result.outcome.value)
            span.set_attribute(ATTR_TOOLLOOP_ITERATION, result.iterations)
            return result

    async def _run(
        self,
        history: ConversationHistory,
        output_parser: Callable[[str], Any] | None,
    ) -> ToolLoopResult:
        records: list[ToolCallRecord] = []
        schemas = self.dispatcher.all_tools()
        usage: TokenUsage | None = None
        last_reply: CanonicalMessage | None = None

        def result(outcome: ToolLoopOutcome, iterations: int, **fields: Any) -> ToolLoopResult:
            return ToolLoopResult(
                outcome=outcome,
                iterations=iterations,
                history=history,
                records=records,
                usage=usage,
                **fields,
            )

        for iteration in range(1, self.config.max_iterations + 1):
            if self.cancel_event.is_set():
                return result(ToolLoopOutcome.CANCELLED, iteration - 1, final_message=last_reply)

            for callback in self.callbacks:
                callback.before_model_call(history, iteration)
            reply = await self.transport.generate(history, schemas or None)
            last_reply = reply
            reply_usage = TokenUsage.from_message(reply)
            if reply_usage is not None:
                usage = reply_usage if usage is None else usage + reply_usage
            history.append(reply)
            for callback in self.callbacks:
                callback.after_model_call(reply, iteration, reply_usage)

            if not reply.tool_calls:
                output = output_parser(reply.text) if output_parser is not None else reply.text
                logger.debug("Tool loop completed after %d iteration(s)", iteration)
                return result(
                    ToolLoopOutcome.COMPLETED, iteration, final_message=reply, output=output
                )

            if self.config.mode is ToolLoopMode.PARALLEL:
                batch = await self._run_parallel(reply.tool_calls)
            else:
                batch = await self._run_sequential(reply.tool_calls)

            for record in batch:
                history.append(CanonicalMessage.tool(record.to_result()))
                for callback in self.callbacks:
                    callback.after_tool_result(record, iteration)
            records.extend(batch)
            for callback in self.callbacks:
                callback.after_iteration(batch, iteration)

            replan = next((r.replan for r in batch if r.replan is not None), None)
            if replan is not None:
                logger.info("Tool requested replan: %s", replan.reason)
                return result(
                    ToolLoopOutcome.REPLAN_REQUESTED,
                    iteration,
                    final_message=last_reply,
                    replan=replan,
                )

        logger.warning("Tool loop hit max_iterations=%d", self.config.max_iterations)
        return result(
            ToolLoopOutcome.MAX_ITERATIONS, self.config.max_iterations, final_message=last_reply
        )

    # ------------------------------------------------------------------
    # Dispatch modes
    # ------------------------------------------------------------------

    async def _run_sequential(self, calls: list[ToolCall]) -> list[ToolCallRecord]:
        """One call at a time; a requested replan skips the remaining calls."""
        records: list[ToolCallRecord] = []
        for call in calls:
            if self.cancel_event.is_set():
                break
            record = await self._call(call, timeout=self.config.tool_timeout)
            records.append(record)
            if record.replan is not None:
                break
        return records

    async def _run_parallel(self, calls: list[ToolCall]) -> list[ToolCallRecord]:
        settings = self.config.parallel
        executor: Executor | None = None
        semaphore: asyncio.Semaphore | None = None
        if settings.executor_type is ExecutorType.FIXED:
            executor = ThreadPoolExecutor(
                max_workers=settings.pool_size, thread_name_prefix="goalflow-tool"
            )
        elif settings.executor_type is ExecutorType.BOUNDED:
            semaphore = asyncio.Semaphore(settings.pool_size)

        events = [threading.Event() for _ in calls]

        async def guarded(call: ToolCall, event: threading.Event) -> ToolCallRecord:
            if semaphore is None:
                return await self._call(
                    call, timeout=settings.per_tool_timeout, executor=executor, event=event
                )
            async with semaphore:
                return await self._call(
                    call, timeout=settings.per_tool_timeout, executor=executor, event=event
                )

        tasks = [asyncio.create_task(guarded(c, e)) for c, e in zip(calls, events, strict=True)]
        started = time.monotonic()
        try:
            _, pending = await asyncio.wait(tasks, timeout=settings.batch_timeout)
            if pending:
                logger.warning(
                    "Batch timeout after %.1fs; cancelling %d outstanding call(s)",
                    settings.batch_timeout,
                    len(pending),
                )
                for task, event in zip(tasks, events, strict=True):
                    if task in pending:
                        event.set()
                        task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

            records: list[ToolCallRecord] = []
            for call, task in zip(calls, tasks, strict=True):
                if task in pending or task.cancelled():
                    records.append(
                        ToolCallRecord(
                            call=call,
                            status=ToolCallStatus.TIMEOUT,
                            error=f"batch timed out after {settings.batch_timeout}s",
                            duration=time.monotonic() - started,
                        )
                    )
                else:
                    records.append(task.result())
            return records
        finally:
            for task, event in zip(tasks, events, strict=True):
                if not task.done():
                    event.set()
                    task.cancel()
            if executor is not None:
                executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Single call
    # ------------------------------------------------------------------

    async def _call(
        self,
        call: ToolCall,
        *,
        timeout: float | None,
        executor: Executor | None = None,
        event: threading.Event | None = None,
    ) -> ToolCallRecord:
        with _tracer.start_as_current_span("tool.call") as span:
            span.set_attribute(ATTR_TOOL_NAME, call.name)
            record = await self._invoke(call, timeout=timeout, executor=executor, event=event)
            span.set_attribute(ATTR_TOOL_STATUS, record.status.value)
            return record

    async def _invoke(
        self,
        call: ToolCall,
        *,
        timeout: float | None,
        executor: Executor | None,
        event: threading.Event | None,
    ) -> ToolCallRecord:
        event = event or threading.Event()
        context = ToolContext(self.blackboard, call, event, self.cancel_event)
        started = time.monotonic()

        def record(status: ToolCallStatus, **fields: Any) -> ToolCallRecord:
            return ToolCallRecord(
                call=call, status=status, duration=time.monotonic() - started, **fields
            )

        try:
            execution = self.dispatcher.execute(call, context, executor=executor)
            if timeout is None:
                value = await execution
            else:
                value = await asyncio.wait_for(execution, timeout)
        except ToolNotFoundError as exc:
            logger.warning("Model requested unknown tool %s", call.name)
            return record(ToolCallStatus.NOT_FOUND, error=str(exc))
        except TimeoutError:
            event.set()
            logger.warning("Tool %s timed out after %ss", call.name, timeout)
            return record(ToolCallStatus.TIMEOUT, error=f"timed out after {timeout}s")
        except ToolExecutionError as exc:
            logger.error("Tool %s failed: %s", call.name, exc.detail)
            return record(ToolCallStatus.ERROR, error=exc.detail or str(exc))

        if isinstance(value, ReplanRequested):
            return record(
                ToolCallStatus.SUCCESS,
                content=f"Replan requested: {value.reason}",
                replan=value,
            )
        if isinstance(value, ToolOutput):
            if value.artifact is not None:
                self.blackboard.add_object(value.artifact)
            return record(ToolCallStatus.SUCCESS, content=render_content(value.content))
        return record(ToolCallStatus.SUCCESS, content=render_content(value))
