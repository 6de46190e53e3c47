"""Tool-loop callbacks — observe each model call, tool result and iteration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from goalflow.core.interface.models import CanonicalMessage, ConversationHistory
    from goalflow.toolloop.models import TokenUsage, ToolCallRecord


class ToolLoopCallback:
    """Base class for tool-loop observers.

    Override any hook; the others stay no-ops.  Hooks run on the loop's
    task, in registration order, and exceptions propagate to the caller of
    :meth:`~goalflow.toolloop.loop.ToolLoop.execute`.
    """

    def before_model_call(self, history: ConversationHistory, iteration: int) -> None:
        """Called before each model invocation."""

    def after_model_call(
        self,
        reply: CanonicalMessage,
        iteration: int,
        usage: TokenUsage | None,
    ) -> None:
        """Called with the model's reply, before any tool call is dispatched."""

    def after_tool_result(self, record: ToolCallRecord, iteration: int) -> None:
        """Called once per tool call, in request order."""

    def after_iteration(self, records: list[ToolCallRecord], iteration: int) -> None:
        """Called after every tool call of an iteration has been recorded."""
