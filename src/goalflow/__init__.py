"""goalflow — goal-directed task execution engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

__version__ = "0.1.0"

if TYPE_CHECKING:
    from goalflow.runtime.platform import AgentPlatform as AgentPlatform
    from goalflow.runtime.process import AgentProcess as AgentProcess
    from goalflow.sdk.settings import SettingsLoader as SettingsLoader
    from goalflow.sdk.settings import build_platform as build_platform

_LAZY_EXPORTS = {
    "AgentPlatform": "goalflow.runtime.platform",
    "AgentProcess": "goalflow.runtime.process",
    "SettingsLoader": "goalflow.sdk.settings",
    "build_platform": "goalflow.sdk.settings",
}


def __getattr__(name: str) -> object:
    module_path = _LAZY_EXPORTS.get(name)
    if module_path is not None:
        import importlib

        mod = importlib.import_module(module_path)
        return getattr(mod, name)
    raise AttributeError(f"module 'goalflow' has no attribute {name!r}")
