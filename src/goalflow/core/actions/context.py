"""ActionContext — everything an action invocation may touch, passed explicitly."""

from __future__ import annotations

import threading
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

from goalflow.core.actions.outcomes import AwaitRequest, Awaiting, ReplanRequested

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action
    from goalflow.core.blackboard.blackboard import Blackboard
    from goalflow.core.interface.models import ConversationHistory
    from goalflow.toolloop.callbacks import ToolLoopCallback
    from goalflow.toolloop.config import ToolLoopConfig
    from goalflow.toolloop.dispatcher import ToolDispatcher
    from goalflow.toolloop.models import ModelTransport, Tool, ToolLoopResult


class ActionContext:
    """The run state visible to a single action invocation.

    Inputs are resolved from the blackboard immediately before the
    invocation; anything else should be re-read from :attr:`blackboard`
    at use time.
    """

    def __init__(
        self,
        *,
        process_id: str,
        blackboard: Blackboard,
        action: Action,
        inputs: dict[str, Any] | None = None,
        attempt: int = 1,
        tool_loop_config: ToolLoopConfig | None = None,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self.process_id = process_id
        self.blackboard = blackboard
        self.action = action
        self.inputs = inputs or {}
        self.attempt = attempt
        self.tool_loop_config = tool_loop_config
        self.cancel_event = cancel_event or threading.Event()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def input(self, key: str | type) -> Any:
        """Return a resolved input by label or by type.

        Raises:
            KeyError: If no input matches.
        """
        if isinstance(key, str):
            return self.inputs[key]
        for value in self.inputs.values():
            if isinstance(value, key):
                return value
        raise KeyError(key.__name__)

    def replan(
        self,
        reason: str = "",
        update: Callable[[Blackboard], None] | None = None,
    ) -> ReplanRequested:
        """Build a replan outcome for the action to return."""
        return ReplanRequested(reason=reason, update=update)

    def await_input(
        self,
        prompt: str = "",
        *,
        expected_type: type | None = None,
        binding: str | None = None,
    ) -> Awaiting:
        """Build a waiting outcome for the action to return."""
        return Awaiting(
            AwaitRequest(prompt=prompt, expected_type=expected_type, binding=binding)
        )

    async def tool_loop(
        self,
        transport: ModelTransport,
        tools: ToolDispatcher | Sequence[Tool],
        history: ConversationHistory,
        *,
        output_parser: Callable[[str], Any] | None = None,
        config: ToolLoopConfig | None = None,
        callbacks: Sequence[ToolLoopCallback] = (),
    ) -> ToolLoopResult:
        """Run a tool loop bound to this run's blackboard and cancellation signal."""
        from goalflow.toolloop.config import ToolLoopConfig
        from goalflow.toolloop.dispatcher import ToolDispatcher
        from goalflow.toolloop.loop import ToolLoop

        dispatcher = tools if isinstance(tools, ToolDispatcher) else ToolDispatcher(tools)
        loop = ToolLoop(
            transport,
            dispatcher,
            config=config or self.tool_loop_config or ToolLoopConfig(),
            blackboard=self.blackboard,
            cancel_event=self.cancel_event,
            callbacks=callbacks,
        )
        return await loop.execute(history, output_parser=output_parser)
