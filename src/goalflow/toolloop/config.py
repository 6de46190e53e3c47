"""Tool-loop configuration."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ToolLoopMode(str, Enum):
    """How the tool calls of one model turn are dispatched."""

    SEQUENTIAL = "sequential"
    PARALLEL = "parallel"


class ExecutorType(str, Enum):
    """Concurrency limit applied to parallel tool calls.

    * ``bounded`` — at most ``pool_size`` calls in flight at once.
    * ``unbounded`` — no limit; sync handlers share the default executor.
    * ``fixed`` — sync handlers run on a dedicated pool of ``pool_size`` threads.
    """

    BOUNDED = "bounded"
    UNBOUNDED = "unbounded"
    FIXED = "fixed"


class ParallelModeConfig(BaseModel):
    """Timeouts and executor settings for parallel mode."""

    model_config = ConfigDict(frozen=True)

    per_tool_timeout: float = Field(default=30.0, gt=0)
    batch_timeout: float = Field(default=60.0, gt=0)
    executor_type: ExecutorType = ExecutorType.BOUNDED
    pool_size: int = Field(default=10, ge=1)


class ToolLoopConfig(BaseModel):
    """Immutable settings for a :class:`~goalflow.toolloop.loop.ToolLoop`."""

    model_config = ConfigDict(frozen=True)

    max_iterations: int = Field(default=20, ge=1)
    mode: ToolLoopMode = ToolLoopMode.SEQUENTIAL
    tool_timeout: float | None = Field(
        default=None, gt=0, description="Per-call timeout in sequential mode."
    )
    parallel: ParallelModeConfig = ParallelModeConfig()
