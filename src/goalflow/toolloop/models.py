"""Tool-loop models — tools, call records, loop results and the transport contract."""

from __future__ import annotations

import json
import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel, ConfigDict, Field

from goalflow.core.actions.outcomes import ReplanRequested  # noqa: TC001
from goalflow.core.interface.models import (  # noqa: TC001
    CanonicalMessage,
    ConversationHistory,
    ToolCall,
    ToolResult,
)
from goalflow.toolloop.errors import ToolLoopIncompleteError

if TYPE_CHECKING:
    from goalflow.core.blackboard.blackboard import Blackboard


@runtime_checkable
class ModelTransport(Protocol):
    """Sends a conversation to a model and returns its next message."""

    async def generate(
        self,
        history: ConversationHistory,
        tools: list[dict[str, Any]] | None = None,
    ) -> CanonicalMessage:
        ...


class ToolContext:
    """What a tool handler may touch during one call.

    Handlers that run for a long time should poll :attr:`cancelled`; it
    turns true when the call times out or the owning run is killed.
    """

    def __init__(
        self,
        blackboard: Blackboard,
        call: ToolCall,
        cancel_event: threading.Event | None = None,
        parent_cancel_event: threading.Event | None = None,
    ) -> None:
        self.blackboard = blackboard
        self.call = call
        self.cancel_event = cancel_event or threading.Event()
        self.parent_cancel_event = parent_cancel_event

    @property
    def cancelled(self) -> bool:
        if self.cancel_event.is_set():
            return True
        return self.parent_cancel_event is not None and self.parent_cancel_event.is_set()


ToolHandler = Callable[[dict[str, Any], ToolContext], Any]


@dataclass(frozen=True)
class ToolOutput:
    """A tool result with a side artifact.

    ``content`` goes back to the model; ``artifact`` is added to the
    blackboard as an anonymous object.
    """

    content: Any
    artifact: Any = None


class Tool(BaseModel):
    """A callable exposed to the model.

    ``handler`` receives ``(arguments, context)`` and may be sync (run on a
    worker thread) or async.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    name: str
    description: str = ""
    parameters: dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )
    handler: ToolHandler

    def schema(self) -> dict[str, Any]:
        """OpenAI-compatible function schema."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolCallStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    TIMEOUT = "timeout"
    NOT_FOUND = "not_found"


class ToolCallRecord(BaseModel):
    """The fate of one tool call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    call: ToolCall
    status: ToolCallStatus
    content: str = ""
    error: str | None = None
    duration: float = 0.0
    replan: ReplanRequested | None = None

    @property
    def ok(self) -> bool:
        return self.status is ToolCallStatus.SUCCESS

    def to_result(self) -> ToolResult:
        if self.ok:
            return ToolResult.from_text(self.call.id, self.content)
        return ToolResult.from_text(
            self.call.id, f"Error ({self.status.value}): {self.error}", is_error=True
        )


class TokenUsage(BaseModel):
    """Token counts reported by the model, summed with ``+``."""

    model_config = ConfigDict(frozen=True)

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0

    def __add__(self, other: TokenUsage) -> TokenUsage:
        return TokenUsage(
            prompt_tokens=self.prompt_tokens + other.prompt_tokens,
            completion_tokens=self.completion_tokens + other.completion_tokens,
            total_tokens=self.total_tokens + other.total_tokens,
        )

    @classmethod
    def from_message(cls, message: CanonicalMessage) -> TokenUsage | None:
        """Read the ``usage`` metadata a transport attached, if any."""
        usage = message.metadata.get("usage")
        if not usage:
            return None
        return cls(
            prompt_tokens=usage.get("prompt_tokens") or 0,
            completion_tokens=usage.get("completion_tokens") or 0,
            total_tokens=usage.get("total_tokens") or 0,
        )


class ToolLoopOutcome(str, Enum):
    COMPLETED = "completed"
    MAX_ITERATIONS = "max_iterations"
    REPLAN_REQUESTED = "replan_requested"
    CANCELLED = "cancelled"


class ToolLoopResult(BaseModel):
    """How a tool loop ended, with everything it produced."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    outcome: ToolLoopOutcome
    iterations: int
    history: ConversationHistory
    records: list[ToolCallRecord] = []
    final_message: CanonicalMessage | None = None
    output: Any = None
    replan: ReplanRequested | None = None
    usage: TokenUsage | None = None

    @property
    def text(self) -> str:
        return self.final_message.text if self.final_message is not None else ""

    def require_output(self) -> Any:
        """Return the parsed output, or raise if the loop did not complete.

        Raises:
            ToolLoopIncompleteError: For any outcome other than COMPLETED.
        """
        if self.outcome is not ToolLoopOutcome.COMPLETED:
            raise ToolLoopIncompleteError(self.outcome.value, self.iterations)
        return self.output


def render_content(value: Any) -> str:
    """Turn a tool's return value into text for the model."""
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return str(value)
