from __future__ import annotations

import sys
import tomllib
from pathlib import Path
from types import ModuleType
from typing import Any, cast
from unittest.mock import Mock

import pytest

from trainrunner.tracking import MLflowTracker, NullTracker
from trainrunner.tracking.mlflow import _flatten_params


def test_null_tracker_methods_are_callable_without_error() -> None:
    tracker = NullTracker()

    tracker.start_run("smoke-run")
    tracker.log_params({"data": {"batch_size": 8}})
    tracker.log_metrics({"val/loss": 1.23}, step=1)
    tracker.log_checkpoint(Path("checkpoint_2024-01-01_00-00-00_1_1.pt"), step=1)
    tracker.end_run()


def test_mlflow_tracker_lifecycle_and_call_contract(monkeypatch: pytest.MonkeyPatch) -> None:
    fake_mlflow: Any = ModuleType("mlflow")
    for name in (
        "set_tracking_uri",
        "set_experiment",
        "start_run",
        "log_params",
        "log_metrics",
        "set_tags",
        "end_run",
    ):
        setattr(fake_mlflow, name, Mock())
    monkeypatch.setitem(sys.modules, "mlflow", fake_mlflow)

    tracker = MLflowTracker(tracking_uri="file:./mlruns", experiment="trainrunner")

    tracker.start_run("unit-run")
    tracker.log_params(
        {
            "model": {"hidden_sizes": [4, 2], "lr": 0.01},
            "tracking": {"run_name": None},
        }
    )
    tracker.log_metrics({"val/loss": 0.5}, step=3)
    tracker.log_metrics({}, step=4)
    tracker.log_checkpoint("work/checkpoint_2024-01-01_00-00-00_1_3.pt", step=3)
    tracker.end_run()

    cast(Mock, fake_mlflow.set_tracking_uri).assert_called_once_with("file:./mlruns")
    cast(Mock, fake_mlflow.set_experiment).assert_called_once_with("trainrunner")
    cast(Mock, fake_mlflow.start_run).assert_called_once_with(run_name="unit-run")
    cast(Mock, fake_mlflow.log_params).assert_called_once_with(
        {
            "model.hidden_sizes": "[4, 2]",
            "model.lr": 0.01,
            "tracking.run_name": "None",
        }
    )
    cast(Mock, fake_mlflow.log_metrics).assert_called_once_with({"val/loss": 0.5}, step=3)
    cast(Mock, fake_mlflow.set_tags).assert_called_once_with(
        {
            "checkpoint.latest": "work/checkpoint_2024-01-01_00-00-00_1_3.pt",
            "checkpoint.latest_step": "3",
        }
    )
    cast(Mock, fake_mlflow.end_run).assert_called_once_with()


def test_mlflow_tracker_without_mlflow_raises(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setitem(sys.modules, "mlflow", None)

    with pytest.raises(RuntimeError, match="optional 'mlflow' dependency"):
        MLflowTracker(tracking_uri="file:./mlruns", experiment="trainrunner")


def test_flatten_params_uses_dot_keys_for_nested_values() -> None:
    flattened = _flatten_params(
        {
            "run": {"name": "demo", "deterministic": True},
            "schedule": {"save_every_s": 5.0, "epochs": 4, "validate_only": False},
        }
    )
    assert flattened == {
        "run.name": "demo",
        "run.deterministic": True,
        "schedule.save_every_s": 5.0,
        "schedule.epochs": 4,
        "schedule.validate_only": False,
    }


def test_mlflow_tracker_integration_local_sqlite_backend(tmp_path: Path) -> None:
    mlflow = pytest.importorskip("mlflow")
    tracking_uri = f"sqlite:///{tmp_path / 'mlflow.db'}"
    artifact_root = tmp_path / "mlartifacts"
    artifact_root.mkdir(parents=True, exist_ok=True)
    experiment_name = "trainrunner_integration"

    client = mlflow.tracking.MlflowClient(tracking_uri=tracking_uri)
    client.create_experiment(experiment_name, artifact_location=artifact_root.as_uri())

    tracker = MLflowTracker(tracking_uri=tracking_uri, experiment=experiment_name)
    tracker.start_run("integration-run")

    active_run = mlflow.active_run()
    assert active_run is not None
    run_id = active_run.info.run_id

    tracker.log_params({"schedule": {"epochs": 7}})
    tracker.log_metrics({"val/loss": 0.42}, step=5)
    tracker.log_checkpoint(tmp_path / "checkpoint_2024-01-01_00-00-00_1_5.pt", step=5)
    tracker.end_run()

    run = client.get_run(run_id)
    assert run.data.params["schedule.epochs"] == "7"
    assert run.data.metrics["val/loss"] == 0.42
    assert run.data.tags["checkpoint.latest_step"] == "5"

    metric_history = client.get_metric_history(run_id, "val/loss")
    assert metric_history
    assert metric_history[-1].step == 5


def test_mlflow_dependency_is_optional_not_core() -> None:
    pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
    pyproject = tomllib.loads(pyproject_path.read_text(encoding="utf-8"))

    core_deps = pyproject["project"]["dependencies"]
    optional_deps = pyproject["project"]["optional-dependencies"]

    assert all(not dep.startswith("mlflow") for dep in core_deps)
    assert "mlflow" in optional_deps
    assert any(dep.startswith("mlflow") for dep in optional_deps["mlflow"])
