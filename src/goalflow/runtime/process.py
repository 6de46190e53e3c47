"""AgentProcess — the plan/act state machine for a single run.

Each cycle of :meth:`AgentProcess.run`:

1. If any goal is satisfied, the run is COMPLETED.
2. The planner derives a fresh plan from the current blackboard.
3. No plan: the run is STUCK and the stuck policy decides what happens.
4. Otherwise the first action of the plan is executed (with retries) and
   its outcome applied: bind the output, replan, wait for input, or
   recover/fail.

A plan is never cached across cycles, so any blackboard change made by an
action, a tool, a stuck handler or a resumed value is seen immediately.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import threading
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from goalflow.core.actions.context import ActionContext
from goalflow.core.actions.models import RetryPolicy
from goalflow.core.actions.outcomes import (
    ActionOutcome,
    AwaitRequest,
    Awaiting,
    Completed,
    Failed,
    ReplanRequested,
)
from goalflow.core.actions.retry import invoke_with_retry
from goalflow.core.blackboard.blackboard import Blackboard
from goalflow.core.blackboard.errors import BindingTypeError
from goalflow.core.conditions.evaluator import BlackboardConditionEvaluator
from goalflow.core.planning.goap import GoapPlanner
from goalflow.core.planning.models import NoPlanFound
from goalflow.runtime.errors import (
    ActionBudgetExceededError,
    ActionFailedError,
    InvalidProcessStateError,
    NoPlanFoundError,
)
from goalflow.runtime.events import ProcessEvent, ProcessEventType, dispatch_event
from goalflow.runtime.models import (
    ActionInvocation,
    InvocationOutcome,
    ProcessOptions,
    ProcessReport,
    ProcessStatus,
)
from goalflow.runtime.stuck import StuckAction
from goalflow.utils.telemetry import (
    ATTR_ACTION_ATTEMPTS,
    ATTR_ACTION_NAME,
    ATTR_ACTION_OUTCOME,
    ATTR_AGENT_NAME,
    ATTR_GOAL_NAME,
    ATTR_PROCESS_ID,
    ATTR_PROCESS_STATUS,
    get_tracer,
)

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action, Agent, Goal
    from goalflow.core.conditions.evaluator import ConditionEvaluator
    from goalflow.core.planning.models import Planner
    from goalflow.runtime.events import ProcessEventListener
    from goalflow.runtime.stuck import StuckDecision, StuckHandler
    from goalflow.toolloop.config import ToolLoopConfig

logger = logging.getLogger(__name__)
_tracer = get_tracer(__name__)


class AgentProcess:
    """One run of an :class:`~goalflow.core.actions.models.Agent`.

    Usage::

        process = AgentProcess(agent, Blackboard({"query": "..."}))
        status = await process.run()
        if status is ProcessStatus.WAITING:
            process.resume(answer)
            status = await process.run()
    """

    def __init__(
        self,
        agent: Agent,
        blackboard: Blackboard | None = None,
        *,
        planner: Planner | None = None,
        evaluator: ConditionEvaluator | None = None,
        stuck_handler: StuckHandler | None = None,
        recovery_action: Action | None = None,
        default_retry: RetryPolicy | None = None,
        tool_loop_config: ToolLoopConfig | None = None,
        options: ProcessOptions | None = None,
        process_id: str | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        listeners: Sequence[ProcessEventListener] = (),
    ) -> None:
        self.id = process_id or uuid4().hex[:12]
        self.agent = agent
        self.blackboard = blackboard if blackboard is not None else Blackboard()
        self.evaluator = evaluator or BlackboardConditionEvaluator(agent.conditions)
        self.planner = planner or GoapPlanner(self.evaluator)
        self.stuck_handler = stuck_handler
        self.recovery_action = recovery_action
        self.default_retry = default_retry
        self.tool_loop_config = tool_loop_config
        self.options = options or ProcessOptions()
        self.listeners: list[ProcessEventListener] = list(listeners)
        self._sleep = sleep

        self.status = ProcessStatus.RUNNING
        self.error: BaseException | None = None
        self.goal_achieved: Goal | None = None
        self.history: list[ActionInvocation] = []
        self.pending_request: AwaitRequest | None = None

        self._awaiting_action: Action | None = None
        self._actions_executed = 0
        self._stuck_recoveries = 0
        self._recovered: set[str] = set()
        self._pause_requested = False
        self._running = False
        self._current_task: asyncio.Task[tuple[ActionOutcome, int]] | None = None
        self._cancel_event = threading.Event()
        self._running_time = 0.0
        self._emit(ProcessEventType.CREATED)

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    async def run(self) -> ProcessStatus:
        """Drive the run until it finishes or suspends; return the status.

        Raises:
            InvalidProcessStateError: If the run is WAITING (call
                :meth:`resume` first) or is already being driven.
        """
        if self.status.is_terminal:
            return self.status
        if self.status is ProcessStatus.WAITING or self._running:
            raise InvalidProcessStateError(self.id, self._state_label(), "run")

        self._running = True
        if self.status is ProcessStatus.STUCK:
            self._stuck_recoveries = 0
        self._set_status(ProcessStatus.RUNNING)
        started = time.monotonic()

        with _tracer.start_as_current_span("process.run") as span:
            span.set_attribute(ATTR_PROCESS_ID, self.id)
            span.set_attribute(ATTR_AGENT_NAME, self.agent.name)
            try:
                while self.status is ProcessStatus.RUNNING:
                    if self._pause_requested:
                        self._pause_requested = False
                        self._set_status(ProcessStatus.PAUSED)
                        break
                    await self._cycle()
            finally:
                self._running = False
                self._running_time += time.monotonic() - started
            span.set_attribute(ATTR_PROCESS_STATUS, self.status.value)
            if self.goal_achieved is not None:
                span.set_attribute(ATTR_GOAL_NAME, self.goal_achieved.name)

        return self.status

    def kill(self) -> bool:
        """Terminate the run; returns ``False`` if it had already finished.

        The in-flight action (including any retry backoff) is cancelled and
        tool calls are signalled to stop.  Nothing on the blackboard is
        rolled back.
        """
        if self.status.is_terminal:
            return False
        self._set_status(ProcessStatus.KILLED)
        self._cancel_event.set()
        self.pending_request = None
        if self._current_task is not None and not self._current_task.done():
            self._current_task.cancel()
        return True

    def resume(self, value: Any) -> None:
        """Answer the pending request with *value* and return to RUNNING.

        The value is bound where the request says, defaulting to the
        awaiting action's output binding.  Call :meth:`run` to continue.

        Raises:
            InvalidProcessStateError: If the run is not WAITING.
            BindingTypeError: If *value* has the wrong type.
        """
        if self.status is not ProcessStatus.WAITING:
            raise InvalidProcessStateError(self.id, self.status.value, "resume")
        request = self.pending_request
        action = self._awaiting_action
        assert request is not None and action is not None

        as_output = request.binding is None
        binding = request.binding or action.output_binding
        if request.expected_type is not None:
            if not request.accepts(value):
                raise BindingTypeError(binding, request.expected_type, type(value))
        elif as_output and action.output_type is not None:
            if not isinstance(value, action.output_type):
                raise BindingTypeError(binding, action.output_type, type(value))

        if as_output:
            self._bind_output(action, value)
        else:
            self.blackboard.set(binding, value)

        self._record(action, InvocationOutcome.COMPLETED, detail=f"resumed {request.id}")
        self.pending_request = None
        self._awaiting_action = None
        self._set_status(ProcessStatus.RUNNING)

    def pause(self) -> None:
        """Suspend at the next cycle boundary (immediately if not being driven).

        Raises:
            InvalidProcessStateError: If the run is not RUNNING.
        """
        if self.status is not ProcessStatus.RUNNING:
            raise InvalidProcessStateError(self.id, self.status.value, "pause")
        if self._running:
            self._pause_requested = True
        else:
            self._set_status(ProcessStatus.PAUSED)

    def unsatisfied_goals(self) -> list[str]:
        return [
            g.name
            for g in self.agent.goals
            if not g.is_satisfied(self.blackboard, self.evaluator).is_true
        ]

    def add_listener(self, listener: ProcessEventListener) -> None:
        """Deliver this process's events to *listener* from now on."""
        self.listeners.append(listener)

    def report(self) -> ProcessReport:
        return ProcessReport(
            process_id=self.id,
            agent=self.agent.name,
            status=self.status,
            error=None if self.error is None else str(self.error),
            goal_achieved=None if self.goal_achieved is None else self.goal_achieved.name,
            unsatisfied_goals=self.unsatisfied_goals(),
            blackboard=self.blackboard.snapshot(),
            pending_request=self.pending_request,
            history=list(self.history),
            actions_executed=self._actions_executed,
            running_time=self._running_time,
        )

    # ------------------------------------------------------------------
    # Cycle
    # ------------------------------------------------------------------

    async def _cycle(self) -> None:
        for goal in sorted(self.agent.goals, key=lambda g: (-g.value, g.name)):
            if goal.is_satisfied(self.blackboard, self.evaluator).is_true:
                self._complete(goal)
                return

        result = self.planner.plan(self.blackboard, self.agent.goals, self.agent.actions)
        if isinstance(result, NoPlanFound):
            await self._handle_stuck(result)
            return
        if result.is_complete:
            self._complete(result.goal)
            return

        logger.info("Process %s plan: %s", self.id, result)
        self._emit(ProcessEventType.PLAN_FORMULATED, goal=result.goal.name, detail=str(result))
        assert result.first is not None
        await self._execute(result.first, planned=True)

    def _complete(self, goal: Goal) -> None:
        self.goal_achieved = goal
        logger.info("Process %s achieved goal %s", self.id, goal.name)
        self._emit(ProcessEventType.GOAL_ACHIEVED, goal=goal.name)
        self._set_status(ProcessStatus.COMPLETED)

    async def _execute(self, action: Action, *, planned: bool) -> None:
        max_actions = self.options.max_actions
        if max_actions is not None and self._actions_executed >= max_actions:
            self._fail(ActionBudgetExceededError(max_actions))
            return
        self._actions_executed += 1

        inputs = action.resolve_inputs(self.blackboard)
        if inputs is None:
            logger.warning("Inputs of %s vanished before execution; replanning", action.name)
            self._record(action, InvocationOutcome.REPLANNED, detail="inputs unavailable")
            return

        with _tracer.start_as_current_span("action.execute") as span:
            span.set_attribute(ATTR_PROCESS_ID, self.id)
            span.set_attribute(ATTR_ACTION_NAME, action.name)
            self._emit(ProcessEventType.ACTION_STARTED, action=action.name)
            started = time.monotonic()
            outcome, attempts = await self._invoke(
                action, inputs, policy=action.retry or self.default_retry
            )
            elapsed = time.monotonic() - started
            span.set_attribute(ATTR_ACTION_ATTEMPTS, attempts)

            if outcome is None:
                self._record(action, InvocationOutcome.KILLED, attempts, elapsed)
                span.set_attribute(ATTR_ACTION_OUTCOME, InvocationOutcome.KILLED.value)
                return

            kind = await self._apply(action, outcome, attempts, elapsed)
            span.set_attribute(ATTR_ACTION_OUTCOME, kind.value)
            if planned and kind is InvocationOutcome.COMPLETED:
                self._stuck_recoveries = 0
                self._recovered.clear()

    async def _invoke(
        self,
        action: Action,
        inputs: dict[str, Any],
        *,
        policy: RetryPolicy | None,
    ) -> tuple[ActionOutcome | None, int]:
        """Run *action* as a cancellable task; ``(None, 0)`` means it was killed."""

        def make_context(attempt: int) -> ActionContext:
            return ActionContext(
                process_id=self.id,
                blackboard=self.blackboard,
                action=action,
                inputs=inputs,
                attempt=attempt,
                tool_loop_config=self.tool_loop_config,
                cancel_event=self._cancel_event,
            )

        task = asyncio.create_task(
            invoke_with_retry(action, make_context, policy=policy, sleep=self._sleep)
        )
        self._current_task = task
        try:
            outcome, attempts = await task
        except asyncio.CancelledError:
            if self.status is ProcessStatus.KILLED:
                return None, 0
            raise
        finally:
            self._current_task = None
        if self.status is ProcessStatus.KILLED:
            return None, attempts
        return outcome, attempts

    async def _apply(
        self,
        action: Action,
        outcome: ActionOutcome,
        attempts: int,
        elapsed: float,
    ) -> InvocationOutcome:
        if isinstance(outcome, Completed):
            self._bind_output(action, outcome.value)
            logger.info("Process %s completed action %s", self.id, action.name)
            return self._record(action, InvocationOutcome.COMPLETED, attempts, elapsed)

        if isinstance(outcome, ReplanRequested):
            outcome.apply(self.blackboard)
            logger.info("Action %s requested replan: %s", action.name, outcome.reason)
            return self._record(
                action, InvocationOutcome.REPLANNED, attempts, elapsed, outcome.reason
            )

        if isinstance(outcome, Awaiting):
            self.pending_request = outcome.request
            self._awaiting_action = action
            self._set_status(ProcessStatus.WAITING)
            return self._record(
                action, InvocationOutcome.AWAITING, attempts, elapsed, outcome.request.prompt
            )

        assert isinstance(outcome, Failed)
        self._record(action, InvocationOutcome.FAILED, attempts, elapsed, str(outcome.error))
        await self._recover(action, outcome.error, attempts)
        return InvocationOutcome.FAILED

    def _bind_output(self, action: Action, value: Any) -> None:
        with self.blackboard.lock:
            if action.clears_blackboard:
                self.blackboard.clear_default_bindings()
            if value is not None:
                self.blackboard.set(action.output_binding, value)
            for name in action.post:
                self.blackboard.set_condition(name, True)

    # ------------------------------------------------------------------
    # Failure handling
    # ------------------------------------------------------------------

    async def _recover(self, action: Action, error: BaseException, attempts: int) -> None:
        """Run the recovery action once, or fail the process if there is none.

        An action is recovered at most once between two planned completions;
        failing again after its recovery fails the process.
        """
        failure = ActionFailedError(action.name, error, attempts)
        recovery = self._recovery_for(action)
        if recovery is None:
            logger.error("Action %s failed after %d attempt(s): %s", action.name, attempts, error)
            self._fail(failure)
            return
        if action.name in self._recovered:
            logger.error("Action %s failed again after recovery %s", action.name, recovery.name)
            self._fail(failure)
            return
        self._recovered.add(action.name)

        inputs = recovery.resolve_inputs(self.blackboard)
        if inputs is None:
            logger.error("Recovery %s for %s has no inputs available", recovery.name, action.name)
            self._fail(failure)
            return

        logger.warning("Action %s failed; running recovery %s", action.name, recovery.name)
        self._emit(
            ProcessEventType.ACTION_STARTED,
            action=recovery.name,
            detail=f"recovering {action.name}",
        )
        started = time.monotonic()
        outcome, recovery_attempts = await self._invoke(recovery, inputs, policy=RetryPolicy())
        elapsed = time.monotonic() - started

        if outcome is None:
            self._record(recovery, InvocationOutcome.KILLED, recovery_attempts, elapsed)
        elif isinstance(outcome, Failed):
            self._record(recovery, InvocationOutcome.FAILED, 1, elapsed, str(outcome.error))
            logger.error("Recovery %s failed: %s", recovery.name, outcome.error)
            failure.__cause__ = outcome.error
            self._fail(failure)
        elif isinstance(outcome, Completed):
            self._bind_output(recovery, outcome.value)
            self._record(recovery, InvocationOutcome.RECOVERED, 1, elapsed, f"after {action.name}")
        else:
            await self._apply(recovery, outcome, 1, elapsed)

    def _recovery_for(self, action: Action) -> Action | None:
        if action.recovery is not None:
            return self.agent.action(action.recovery)
        if self.recovery_action is not None and self.recovery_action.name != action.name:
            return self.recovery_action
        return None

    def _fail(self, error: BaseException) -> None:
        self.error = error
        self._set_status(ProcessStatus.FAILED)

    # ------------------------------------------------------------------
    # Stuck handling
    # ------------------------------------------------------------------

    async def _handle_stuck(self, no_plan: NoPlanFound) -> None:
        self._set_status(ProcessStatus.STUCK)
        logger.warning("Process %s is stuck: %s", self.id, no_plan.reason)
        self._emit(ProcessEventType.STUCK, detail=no_plan.reason)
        error = NoPlanFoundError(no_plan.goal_names(), no_plan.reason)

        if self.stuck_handler is None:
            self._fail(error)
            return

        decision = self.stuck_handler.handle(self)
        if inspect.isawaitable(decision):
            decision = await decision
        await self._apply_stuck_decision(decision, error)

    async def _apply_stuck_decision(self, decision: StuckDecision, error: NoPlanFoundError) -> None:
        if self.status is ProcessStatus.KILLED:
            return
        if decision.action is StuckAction.FAIL:
            self._fail(NoPlanFoundError(error.goals, decision.reason or error.reason))
            return

        self._stuck_recoveries += 1
        if self._stuck_recoveries > self.options.max_stuck_replans:
            logger.warning(
                "Process %s still stuck after %d recoveries; suspending",
                self.id,
                self.options.max_stuck_replans,
            )
            return

        self._set_status(ProcessStatus.RUNNING)
        if decision.action is StuckAction.CORRECTIVE:
            assert decision.corrective_action is not None
            logger.info("Running corrective action %s", decision.corrective_action.name)
            await self._execute(decision.corrective_action, planned=False)

    # ------------------------------------------------------------------
    # Bookkeeping
    # ------------------------------------------------------------------

    def _record(
        self,
        action: Action,
        outcome: InvocationOutcome,
        attempts: int = 1,
        running_time: float = 0.0,
        detail: str = "",
    ) -> InvocationOutcome:
        self.history.append(
            ActionInvocation(
                action=action.name,
                outcome=outcome,
                attempts=attempts,
                running_time=running_time,
                detail=detail,
            )
        )
        self._emit(
            ProcessEventType.ACTION_RESULT,
            action=action.name,
            outcome=outcome,
            attempts=attempts,
            detail=detail,
        )
        return outcome

    def _set_status(self, status: ProcessStatus) -> None:
        if status is self.status:
            return
        logger.info("Process %s: %s -> %s", self.id, self.status.value, status.value)
        self.status = status
        detail = str(self.error) if status is ProcessStatus.FAILED and self.error else ""
        self._emit(ProcessEventType.STATUS_CHANGED, status=status, detail=detail)

    def _emit(self, event_type: ProcessEventType, **fields: Any) -> None:
        if not self.listeners:
            return
        event = ProcessEvent(type=event_type, process_id=self.id, agent=self.agent.name, **fields)
        dispatch_event(self.listeners, event)

    def _state_label(self) -> str:
        return "being run" if self._running else self.status.value

    def __repr__(self) -> str:
        return (
            f"AgentProcess(id={self.id!r}, agent={self.agent.name!r}, "
            f"status={self.status.value})"
        )
