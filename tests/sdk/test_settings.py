"""Tests for SettingsLoader and build_platform."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

if TYPE_CHECKING:
    from pathlib import Path

from goalflow.core.actions import Action, RetryPolicy
from goalflow.core.planning import PlannerType
from goalflow.runtime import (
    AgentPlatform,
    LoggingEventListener,
    ProcessEvent,
    StuckDecision,
)
from goalflow.sdk import EngineSettings, SettingsLoader, SettingsValidationError, build_platform

_VALID_YAML = """\
planner: utility
default_retry:
  max_attempts: 3
  backoff: 0.25
process:
  max_actions: 40
  max_stuck_replans: 1
tool_loop:
  mode: parallel
  parallel:
    executor_type: fixed
    pool_size: 4
telemetry:
  enabled: false
  otlp_endpoint: ${OTLP_ENDPOINT}
"""


class TestSettingsLoader:
    def test_load_valid(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("OTLP_ENDPOINT", "http://collector:4317")
        f = tmp_path / "goalflow.yaml"
        f.write_text(_VALID_YAML)

        settings = SettingsLoader(f).load()

        assert settings.planner is PlannerType.UTILITY
        assert settings.default_retry.max_attempts == 3
        assert settings.process.max_stuck_replans == 1
        assert settings.tool_loop.parallel.pool_size == 4
        assert settings.telemetry.otlp_endpoint == "http://collector:4317"

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        f = tmp_path / "empty.yaml"
        f.write_text("")
        assert SettingsLoader(f).load() == EngineSettings()

    def test_file_not_found(self, tmp_path: Path) -> None:
        with pytest.raises(SettingsValidationError, match="Cannot read"):
            SettingsLoader(tmp_path / "missing.yaml").load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        f = tmp_path / "bad.yaml"
        f.write_text("{{{{invalid")
        with pytest.raises(SettingsValidationError, match="YAML parse error"):
            SettingsLoader(f).load()

    def test_yaml_not_mapping(self, tmp_path: Path) -> None:
        f = tmp_path / "list.yaml"
        f.write_text("- item1\n- item2\n")
        with pytest.raises(SettingsValidationError, match="must be a mapping"):
            SettingsLoader(f).load()

    def test_validation_error(self, tmp_path: Path) -> None:
        f = tmp_path / "wrong.yaml"
        f.write_text("default_retry:\n  max_attempts: 0\n")
        with pytest.raises(SettingsValidationError, match="max_attempts"):
            SettingsLoader(f).load()

    def test_from_mapping(self) -> None:
        assert SettingsLoader.from_mapping({"planner": "goap"}).planner is PlannerType.GOAP
        with pytest.raises(SettingsValidationError):
            SettingsLoader.from_mapping({"bogus": True})


class TestBuildPlatform:
    def test_defaults(self) -> None:
        platform = build_platform()
        assert isinstance(platform, AgentPlatform)
        assert platform.planner_type is PlannerType.GOAP

    def test_settings_mapped(self) -> None:
        settings = SettingsLoader.from_mapping(
            {
                "planner": "utility",
                "default_retry": {"max_attempts": 2},
                "process": {"max_actions": 7, "max_stuck_replans": 0},
                "tool_loop": {"max_iterations": 4},
            }
        )
        platform = build_platform(settings)

        assert platform.planner_type is PlannerType.UTILITY
        assert platform.default_retry == RetryPolicy(max_attempts=2)
        assert platform.options.max_actions == 7
        assert platform.options.max_stuck_replans == 0
        assert platform.tool_loop_config.max_iterations == 4

    def test_hooks_passed_through(self) -> None:
        class Handler:
            def handle(self, process: object) -> StuckDecision:
                return StuckDecision.fail()

        handler = Handler()
        recovery = Action(name="notify", run=lambda ctx: None)
        platform = build_platform(stuck_handler=handler, recovery_action=recovery)

        assert platform.stuck_handler is handler
        assert platform.recovery_action is recovery

    def test_listeners_passed_through(self) -> None:
        events: list[ProcessEvent] = []
        platform = build_platform(listeners=[events.append])

        assert platform.listeners == [events.append]

    def test_log_events_adds_logging_listener(self) -> None:
        settings = SettingsLoader.from_mapping({"process": {"log_events": True}})
        def custom(event: ProcessEvent) -> None:
            pass

        platform = build_platform(settings, listeners=[custom])

        assert platform.listeners[0] is custom
        assert isinstance(platform.listeners[1], LoggingEventListener)
        assert len(platform.listeners) == 2

    def test_telemetry_configured_when_enabled(self) -> None:
        settings = SettingsLoader.from_mapping(
            {"telemetry": {"enabled": True, "export_to_console": True}}
        )
        with patch("goalflow.sdk.settings.configure_telemetry") as configure:
            build_platform(settings)
        configure.assert_called_once_with(export_to_console=True, otlp_endpoint=None)

    def test_telemetry_skipped_when_disabled(self) -> None:
        with patch("goalflow.sdk.settings.configure_telemetry") as configure:
            build_platform(EngineSettings())
        configure.assert_not_called()
