"""Tool loop — model/tool conversation with bounded, isolated tool execution."""

from goalflow.toolloop.callbacks import ToolLoopCallback
from goalflow.toolloop.config import ExecutorType, ParallelModeConfig, ToolLoopConfig, ToolLoopMode
from goalflow.toolloop.dispatcher import ToolDispatcher
from goalflow.toolloop.errors import (
    ToolExecutionError,
    ToolLoopError,
    ToolLoopIncompleteError,
    ToolNotFoundError,
)
from goalflow.toolloop.loop import ToolLoop
from goalflow.toolloop.models import (
    ModelTransport,
    TokenUsage,
    Tool,
    ToolCallRecord,
    ToolCallStatus,
    ToolContext,
    ToolLoopOutcome,
    ToolLoopResult,
    ToolOutput,
)

__all__ = [
    "ExecutorType",
    "ModelTransport",
    "ParallelModeConfig",
    "TokenUsage",
    "Tool",
    "ToolCallRecord",
    "ToolCallStatus",
    "ToolContext",
    "ToolDispatcher",
    "ToolExecutionError",
    "ToolLoop",
    "ToolLoopCallback",
    "ToolLoopConfig",
    "ToolLoopError",
    "ToolLoopIncompleteError",
    "ToolLoopMode",
    "ToolLoopOutcome",
    "ToolLoopResult",
    "ToolNotFoundError",
    "ToolOutput",
]
