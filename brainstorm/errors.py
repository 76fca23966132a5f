"""Exception classes for Brainstorm."""

from pathlib import Path
from typing import Any, Optional


class BrainstormError(Exception):
    """Base exception for Brainstorm errors."""

    pass


class ReplayError(BrainstormError):
    """Raised when an undo/redo action no longer matches the model."""

    def __init__(self, message: str, action: Optional[Any] = None):
        self.action = action
        super().__init__(message)


class SettingsError(BrainstormError):
    """Raised when a settings file cannot be read or parsed."""

    def __init__(self, message: str, path: Optional[Path] = None):
        self.path = path
        super().__init__(message)
