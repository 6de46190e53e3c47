"""AgentPlatform — create, run and control agent processes by id."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping, Sequence
from typing import TYPE_CHECKING, Any

from goalflow.core.blackboard.blackboard import Blackboard
from goalflow.core.conditions.evaluator import BlackboardConditionEvaluator
from goalflow.core.planning import create_planner
from goalflow.core.planning.models import PlannerType
from goalflow.runtime.errors import InvalidProcessStateError, ProcessNotFoundError
from goalflow.runtime.process import AgentProcess

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action, Agent, RetryPolicy
    from goalflow.core.conditions.evaluator import ConditionEvaluator
    from goalflow.runtime.events import ProcessEventListener
    from goalflow.runtime.models import ProcessOptions, ProcessReport, ProcessStatus
    from goalflow.runtime.stuck import StuckHandler
    from goalflow.toolloop.config import ToolLoopConfig

logger = logging.getLogger(__name__)

EvaluatorFactory = Callable[["Agent"], "ConditionEvaluator"]


def _default_evaluator(agent: Agent) -> ConditionEvaluator:
    return BlackboardConditionEvaluator(agent.conditions)


class AgentPlatform:
    """Run control surface shared by every process it creates.

    Usage::

        platform = AgentPlatform(planner=PlannerType.GOAP)
        pid = platform.create(agent, {"query": "..."}, protected={"user": user})
        status = await platform.run(pid)
    """

    def __init__(
        self,
        *,
        planner: PlannerType | str = PlannerType.GOAP,
        default_retry: RetryPolicy | None = None,
        options: ProcessOptions | None = None,
        tool_loop_config: ToolLoopConfig | None = None,
        evaluator_factory: EvaluatorFactory | None = None,
        stuck_handler: StuckHandler | None = None,
        recovery_action: Action | None = None,
        listeners: Sequence[ProcessEventListener] = (),
    ) -> None:
        self.planner_type = PlannerType(planner)
        self.default_retry = default_retry
        self.options = options
        self.tool_loop_config = tool_loop_config
        self.evaluator_factory = evaluator_factory or _default_evaluator
        self.stuck_handler = stuck_handler
        self.recovery_action = recovery_action
        self.listeners = list(listeners)
        self._processes: dict[str, AgentProcess] = {}

    def create(
        self,
        agent: Agent,
        bindings: Mapping[str, Any] | None = None,
        *,
        protected: Mapping[str, Any] | None = None,
        process_id: str | None = None,
    ) -> str:
        """Create a process for *agent* and return its id (the run is not started)."""
        if process_id is not None and process_id in self._processes:
            msg = f"process id already in use: {process_id}"
            raise ValueError(msg)
        evaluator = self.evaluator_factory(agent)
        process = AgentProcess(
            agent,
            Blackboard(bindings, protected=protected),
            planner=create_planner(self.planner_type, evaluator),
            evaluator=evaluator,
            stuck_handler=self.stuck_handler,
            recovery_action=self.recovery_action,
            default_retry=self.default_retry,
            tool_loop_config=self.tool_loop_config,
            options=self.options,
            process_id=process_id,
            listeners=self.listeners,
        )
        self._processes[process.id] = process
        logger.info("Created process %s for agent %s", process.id, agent.name)
        return process.id

    def get(self, process_id: str) -> AgentProcess:
        """Return the process with *process_id*.

        Raises:
            ProcessNotFoundError: If the id is unknown.
        """
        process = self._processes.get(process_id)
        if process is None:
            raise ProcessNotFoundError(process_id)
        return process

    def processes(self) -> list[AgentProcess]:
        return list(self._processes.values())

    def remove(self, process_id: str) -> AgentProcess:
        """Forget a finished process and return it.

        Raises:
            ProcessNotFoundError: If the id is unknown.
            InvalidProcessStateError: If the process has not finished.
        """
        process = self.get(process_id)
        if not process.status.is_terminal:
            raise InvalidProcessStateError(process_id, process.status.value, "remove")
        del self._processes[process_id]
        logger.debug("Removed process %s", process_id)
        return process

    async def run(self, process_id: str) -> ProcessStatus:
        """Drive the process until it finishes or suspends."""
        return await self.get(process_id).run()

    async def start(
        self,
        agent: Agent,
        bindings: Mapping[str, Any] | None = None,
        *,
        protected: Mapping[str, Any] | None = None,
    ) -> AgentProcess:
        """Create a process and run it; returns the process."""
        process_id = self.create(agent, bindings, protected=protected)
        await self.run(process_id)
        return self.get(process_id)

    def status(self, process_id: str) -> ProcessStatus:
        return self.get(process_id).status

    def report(self, process_id: str) -> ProcessReport:
        return self.get(process_id).report()

    def kill(self, process_id: str) -> bool:
        """Kill the process; ``False`` if it had already finished."""
        killed = self.get(process_id).kill()
        if killed:
            logger.info("Killed process %s", process_id)
        return killed

    async def resume(self, process_id: str, value: Any) -> ProcessStatus:
        """Supply the awaited value and continue running."""
        process = self.get(process_id)
        process.resume(value)
        return await process.run()

    def pause(self, process_id: str) -> None:
        self.get(process_id).pause()
