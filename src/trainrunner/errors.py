"""Exception taxonomy shared by the config layer, the checkpoint store and the loop."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class TrainRunnerError(Exception):
    """Base class for every error raised by trainrunner."""


class ConfigurationError(TrainRunnerError):
    """Raised when the run configuration cannot be loaded or is inconsistent."""

    def __init__(self, message: str, details: str | None = None, errors: list[Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details
        self.errors = errors or []


class CheckpointError(TrainRunnerError):
    """Base class for checkpoint I/O failures; always names the attempted path."""

    def __init__(self, message: str, path: str | Path | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.path = Path(path) if path is not None else None


class PersistError(CheckpointError):
    """Raised when a checkpoint cannot be written."""


class RestoreError(CheckpointError):
    """Raised when a checkpoint cannot be found, read, or decoded."""


class ValidationError(TrainRunnerError):
    """Raised when the validation capability of a trainable fails."""
