"""Exception types raised across the analysis pipeline."""

from __future__ import annotations

from typing import Any, Optional


class ImpactGraphError(Exception):
    """Base class for all ImpactGraph errors."""


class FrontEndError(ImpactGraphError):
    """A source file exists but could not be turned into a FileRecord."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Could not analyze {path}: {reason}")
        self.path = path
        self.reason = reason


class ConfigLoadError(ImpactGraphError):
    """Project configuration is unreadable; the run cannot start."""

    def __init__(self, path: str, reason: str):
        super().__init__(f"Failed to load {path}: {reason}")
        self.path = path
        self.reason = reason


class PersistenceError(ImpactGraphError):
    """Writing or reading a persisted artifact failed.

    ``result`` holds the in-memory run result when the failure happened
    after the analysis finished, so callers can still use it.
    """

    def __init__(self, path: str, reason: str, result: Optional[Any] = None):
        super().__init__(f"Failed to persist {path}: {reason}")
        self.path = path
        self.reason = reason
        self.result = result
