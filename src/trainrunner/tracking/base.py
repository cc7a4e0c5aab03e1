"""Tracker interface seen by the orchestrator and the CLI, plus the disabled default."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any, Protocol


class Tracker(Protocol):
    """Receives the run config once, then validation metrics and checkpoint paths."""

    def start_run(self, run_name: str) -> None: ...

    def log_params(self, params: Mapping[str, Any]) -> None: ...

    def log_metrics(self, metrics: Mapping[str, float], *, step: int) -> None: ...

    def log_checkpoint(self, path: str | Path, *, step: int) -> None: ...

    def end_run(self) -> None: ...


class NullTracker:
    """Drops everything; used when tracking is off or mlflow is missing."""

    def start_run(self, run_name: str) -> None:
        pass

    def log_params(self, params: Mapping[str, Any]) -> None:
        pass

    def log_metrics(self, metrics: Mapping[str, float], *, step: int) -> None:
        pass

    def log_checkpoint(self, path: str | Path, *, step: int) -> None:
        pass

    def end_run(self) -> None:
        pass
