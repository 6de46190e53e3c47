"""Settings loading and platform construction."""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml
from pydantic import ValidationError

from goalflow.runtime.events import LoggingEventListener
from goalflow.runtime.models import ProcessOptions
from goalflow.runtime.platform import AgentPlatform
from goalflow.sdk.errors import SettingsValidationError
from goalflow.sdk.models import EngineSettings
from goalflow.utils.telemetry import configure_telemetry

if TYPE_CHECKING:
    from goalflow.core.actions.models import Action
    from goalflow.runtime.events import ProcessEventListener
    from goalflow.runtime.platform import EvaluatorFactory
    from goalflow.runtime.stuck import StuckHandler


class SettingsLoader:
    """Load and validate an engine settings YAML file into :class:`EngineSettings`."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)

    def load(self) -> EngineSettings:
        """Read YAML, interpolate env vars, and validate.

        Environment variables in the form ``${VAR}`` or ``$VAR`` are expanded
        with :func:`os.path.expandvars` before parsing.  An empty file yields
        the defaults.

        Raises:
            SettingsValidationError: On read, parse or validation failures.
        """
        try:
            raw = self._path.read_text(encoding="utf-8")
        except OSError as exc:
            raise SettingsValidationError(f"Cannot read {self._path}: {exc}") from exc

        try:
            data: Any = yaml.safe_load(os.path.expandvars(raw))
        except yaml.YAMLError as exc:
            raise SettingsValidationError(f"YAML parse error: {exc}") from exc

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise SettingsValidationError("Settings YAML must be a mapping")
        return self.from_mapping(data)

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> EngineSettings:
        """Validate an in-memory mapping.

        Raises:
            SettingsValidationError: If validation fails.
        """
        try:
            return EngineSettings.model_validate(dict(data))
        except ValidationError as exc:
            raise SettingsValidationError(str(exc)) from exc


def build_platform(
    settings: EngineSettings | None = None,
    *,
    evaluator_factory: EvaluatorFactory | None = None,
    stuck_handler: StuckHandler | None = None,
    recovery_action: Action | None = None,
    listeners: Sequence[ProcessEventListener] = (),
) -> AgentPlatform:
    """Create an :class:`AgentPlatform` wired from *settings*.

    Telemetry is configured first when ``settings.telemetry.enabled``.
    ``settings.process.log_events`` adds a :class:`LoggingEventListener`
    after *listeners*.
    """
    settings = settings or EngineSettings()
    listeners = list(listeners)
    if settings.process.log_events:
        listeners.append(LoggingEventListener())

    if settings.telemetry.enabled:
        configure_telemetry(
            export_to_console=settings.telemetry.export_to_console,
            otlp_endpoint=settings.telemetry.otlp_endpoint,
        )

    return AgentPlatform(
        planner=settings.planner,
        default_retry=settings.default_retry,
        options=ProcessOptions(
            max_actions=settings.process.max_actions,
            max_stuck_replans=settings.process.max_stuck_replans,
        ),
        tool_loop_config=settings.tool_loop,
        evaluator_factory=evaluator_factory,
        stuck_handler=stuck_handler,
        recovery_action=recovery_action,
        listeners=listeners,
    )
