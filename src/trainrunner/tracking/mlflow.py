"""Report run config, validation metrics and checkpoints to an MLflow server."""

from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Any

_PARAM_TYPES = (str, int, float, bool)


def _flatten_params(params: Mapping[str, Any], prefix: str = "") -> dict[str, Any]:
    """Turn the nested config dump into ``section.key`` params; lists and None become text."""
    flat: dict[str, Any] = {}
    for key, value in params.items():
        name = f"{prefix}{key}"
        if isinstance(value, Mapping):
            flat.update(_flatten_params(value, f"{name}."))
        else:
            flat[name] = value if isinstance(value, _PARAM_TYPES) else str(value)
    return flat


class MLflowTracker:
    """Uses the module-level ``mlflow`` fluent API, so one tracker owns the active run."""

    def __init__(self, *, tracking_uri: str, experiment: str) -> None:
        try:
            import mlflow  # type: ignore[import-not-found]
        except ModuleNotFoundError as exc:
            raise RuntimeError(
                "tracking.enabled needs the optional 'mlflow' dependency "
                "(pip install -e '.[mlflow]')"
            ) from exc
        self._mlflow = mlflow
        self._tracking_uri = tracking_uri
        self._experiment = experiment

    def start_run(self, run_name: str) -> None:
        self._mlflow.set_tracking_uri(self._tracking_uri)
        self._mlflow.set_experiment(self._experiment)
        self._mlflow.start_run(run_name=run_name)

    def log_params(self, params: Mapping[str, Any]) -> None:
        self._mlflow.log_params(_flatten_params(params))

    def log_metrics(self, metrics: Mapping[str, float], *, step: int) -> None:
        if metrics:
            self._mlflow.log_metrics({k: float(v) for k, v in metrics.items()}, step=step)

    def log_checkpoint(self, path: str | Path, *, step: int) -> None:
        # Overwritten on every save, so the tags name the newest checkpoint.
        self._mlflow.set_tags(
            {"checkpoint.latest": str(path), "checkpoint.latest_step": str(step)}
        )

    def end_run(self) -> None:
        self._mlflow.end_run()
