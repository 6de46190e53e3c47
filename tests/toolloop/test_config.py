"""Tests for tool-loop configuration."""

import pytest
from pydantic import ValidationError

from goalflow.toolloop import ExecutorType, ParallelModeConfig, ToolLoopConfig, ToolLoopMode


class TestToolLoopConfig:
    def test_defaults(self) -> None:
        config = ToolLoopConfig()
        assert config.max_iterations == 20
        assert config.mode is ToolLoopMode.SEQUENTIAL
        assert config.tool_timeout is None
        assert config.parallel.per_tool_timeout == 30.0
        assert config.parallel.batch_timeout == 60.0
        assert config.parallel.executor_type is ExecutorType.BOUNDED
        assert config.parallel.pool_size == 10

    def test_from_mapping(self) -> None:
        config = ToolLoopConfig.model_validate(
            {"mode": "parallel", "parallel": {"executor_type": "fixed", "pool_size": 4}}
        )
        assert config.mode is ToolLoopMode.PARALLEL
        assert config.parallel == ParallelModeConfig(executor_type=ExecutorType.FIXED, pool_size=4)

    @pytest.mark.parametrize(
        "data",
        [
            {"max_iterations": 0},
            {"tool_timeout": 0},
            {"mode": "swarm"},
            {"parallel": {"pool_size": 0}},
            {"parallel": {"batch_timeout": -1}},
        ],
    )
    def test_invalid(self, data: dict[str, object]) -> None:
        with pytest.raises(ValidationError):
            ToolLoopConfig.model_validate(data)

    def test_frozen(self) -> None:
        config = ToolLoopConfig()
        with pytest.raises(ValidationError):
            config.max_iterations = 3  # type: ignore[misc]
