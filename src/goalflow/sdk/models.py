"""Pydantic models for the engine settings YAML."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from goalflow.core.actions.models import RetryPolicy
from goalflow.core.planning.models import PlannerType
from goalflow.toolloop.config import ToolLoopConfig


class ProcessSettings(BaseModel):
    """Per-run limits applied to every process."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_actions: int | None = Field(default=None, ge=1)
    max_stuck_replans: int = Field(default=3, ge=0)
    log_events: bool = Field(default=False, description="Log every process event.")


class TelemetrySettings(BaseModel):
    """Optional telemetry configuration."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enabled: bool = False
    otlp_endpoint: str | None = None
    export_to_console: bool = False


class EngineSettings(BaseModel):
    """Top-level engine configuration, immutable once loaded."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    planner: PlannerType = PlannerType.GOAP
    default_retry: RetryPolicy = RetryPolicy()
    process: ProcessSettings = ProcessSettings()
    tool_loop: ToolLoopConfig = ToolLoopConfig()
    telemetry: TelemetrySettings = TelemetrySettings()
