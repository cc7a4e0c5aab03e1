from __future__ import annotations

from datetime import datetime
from pathlib import Path

from trainrunner.config.schemas import RunConfig
from trainrunner.training.checkpoint import Checkpoint
from trainrunner.training.loop import TrainingResult
from trainrunner.utils.summary import format_run_summary


def _config(**schedule: object) -> RunConfig:
    payload = {
        "run": {"name": "summary-test"},
        "model": {"name": "mlp_sigmoid", "hidden_sizes": [4]},
        "data": {"name": "binary_and"},
        "schedule": schedule or {"epochs": 2},
    }
    return RunConfig.model_validate(payload)


def _result(**overrides: object) -> TrainingResult:
    fields: dict[str, object] = {
        "epochs_started": 2,
        "final_epoch": 5,
        "final_step": 40,
        "saves": 1,
        "validations": 3,
        "interrupted": False,
        "total_time": 1.5,
        "val_metrics": {"val/loss": 0.25},
    }
    fields.update(overrides)
    return TrainingResult(**fields)  # type: ignore[arg-type]


def test_format_run_summary_base_fields_json() -> None:
    summary = format_run_summary(config=_config(), working_dir="work", json_output=True)

    assert isinstance(summary, dict)
    assert summary["run_name"] == "summary-test"
    assert summary["mode"] == "train"
    assert summary["working_dir"] == "work"
    assert summary["model"]["hidden_sizes"] == [4]
    assert summary["schedule"]["epochs"] == 2
    assert "training" not in summary
    assert "validation" not in summary


def test_format_run_summary_includes_train_result_json() -> None:
    checkpoint = Checkpoint(Path("work/checkpoint_2024-01-01_00-00-00_5_40.pt"))
    summary = format_run_summary(
        config=_config(),
        working_dir="work",
        json_output=True,
        train_result=_result(resumed_from="work/checkpoint_2023-12-31_00-00-00_3_24.pt"),
        final_checkpoint=checkpoint,
    )

    assert isinstance(summary, dict)
    training = summary["training"]
    assert training["final_epoch"] == 5
    assert training["final_step"] == 40
    assert training["interrupted"] is False
    assert training["val_metrics"] == {"val/loss": 0.25}
    assert training["resumed_from"] == "work/checkpoint_2023-12-31_00-00-00_3_24.pt"
    assert summary["final_checkpoint"] == str(checkpoint.path)


def test_format_run_summary_includes_train_result_text() -> None:
    summary = format_run_summary(
        config=_config(),
        working_dir="work",
        train_result=_result(interrupted=True, val_metrics=None),
    )

    assert isinstance(summary, str)
    assert summary.startswith("Run summary:")
    assert "final_step=40" in summary
    assert "interrupted=True" in summary
    assert "resumed_from" not in summary
    assert "Final validation" not in summary


def test_format_run_summary_validate_only() -> None:
    checkpoint = Checkpoint(
        Path("work/checkpoint_2024-01-01_00-00-00_5_40.pt"),
        created_at=datetime(2024, 1, 1),
        epoch=5,
        step=40,
    )
    config = _config(validate_only=True)

    text = format_run_summary(
        config=config,
        working_dir="work",
        validation_metrics={"val/accuracy": 1.0},
        validated_checkpoint=checkpoint,
    )
    data = format_run_summary(
        config=config,
        working_dir="work",
        json_output=True,
        validation_metrics={"val/accuracy": 1.0},
        validated_checkpoint=checkpoint,
    )

    assert isinstance(text, str)
    assert "Mode: validate-only" in text
    assert "val/accuracy=1.0000" in text
    assert isinstance(data, dict)
    assert data["mode"] == "validate-only"
    assert data["validation"] == {
        "checkpoint": str(checkpoint.path),
        "metrics": {"val/accuracy": 1.0},
    }
