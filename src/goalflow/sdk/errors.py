"""SDK error types."""

from __future__ import annotations


class SettingsValidationError(Exception):
    """Raised when engine settings fail to load, parse or validate."""
