"""goalflow SDK — settings loading and platform construction."""

from goalflow.sdk.errors import SettingsValidationError
from goalflow.sdk.models import EngineSettings, ProcessSettings, TelemetrySettings
from goalflow.sdk.settings import SettingsLoader, build_platform

__all__ = [
    "EngineSettings",
    "ProcessSettings",
    "SettingsLoader",
    "SettingsValidationError",
    "TelemetrySettings",
    "build_platform",
]
