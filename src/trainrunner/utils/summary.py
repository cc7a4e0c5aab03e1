"""Run summary formatting utilities."""

from __future__ import annotations

from pathlib import Path
from typing import Any

from trainrunner.config.schemas import RunConfig
from trainrunner.training.checkpoint import Checkpoint
from trainrunner.training.loop import TrainingResult


def _metrics_text(metrics: dict[str, float]) -> str:
    return " ".join(f"{key}={value:.4f}" for key, value in sorted(metrics.items()))


def format_run_summary(
    *,
    config: RunConfig,
    working_dir: str | Path,
    json_output: bool = False,
    train_result: TrainingResult | None = None,
    validation_metrics: dict[str, float] | None = None,
    validated_checkpoint: Checkpoint | None = None,
    final_checkpoint: Checkpoint | None = None,
) -> str | dict[str, Any]:
    """Return a run summary as either human text or JSON-ready data."""
    work_path = Path(working_dir)
    mode = "validate-only" if config.schedule.validate_only else "train"

    summary: dict[str, Any] = {
        "run_name": config.run.name,
        "mode": mode,
        "working_dir": str(work_path),
        "model": {
            "name": config.model.name,
            "hidden_sizes": list(config.model.hidden_sizes),
            "lr": config.model.lr,
        },
        "data": {
            "name": config.data.name,
            "batch_size": config.data.batch_size,
            "resettable": config.data.resettable,
        },
        "schedule": {
            "epochs": config.schedule.epochs,
            "validate_only": config.schedule.validate_only,
            "save_every_s": config.schedule.save_every_s,
            "validate_every_s": config.schedule.validate_every_s,
        },
    }
    if train_result is not None:
        training_dict: dict[str, Any] = {
            "epochs_started": train_result.epochs_started,
            "final_epoch": train_result.final_epoch,
            "final_step": train_result.final_step,
            "saves": train_result.saves,
            "validations": train_result.validations,
            "interrupted": train_result.interrupted,
            "total_time": train_result.total_time,
        }
        if train_result.val_metrics is not None:
            training_dict["val_metrics"] = train_result.val_metrics
        if train_result.resumed_from is not None:
            training_dict["resumed_from"] = train_result.resumed_from
        summary["training"] = training_dict
    if validation_metrics is not None:
        summary["validation"] = {
            "checkpoint": str(validated_checkpoint.path) if validated_checkpoint else None,
            "metrics": validation_metrics,
        }
    if final_checkpoint is not None:
        summary["final_checkpoint"] = str(final_checkpoint.path)

    if json_output:
        return summary

    lines = [
        "Run summary:",
        f"  Run name: {config.run.name}",
        f"  Mode: {mode}",
        f"  Working dir: {work_path}",
        f"  Model: name={config.model.name} hidden_sizes={list(config.model.hidden_sizes)} "
        f"lr={config.model.lr}",
        f"  Data: name={config.data.name} batch_size={config.data.batch_size} "
        f"resettable={config.data.resettable}",
        f"  Schedule: epochs={config.schedule.epochs} "
        f"save_every_s={config.schedule.save_every_s} "
        f"validate_every_s={config.schedule.validate_every_s}",
    ]
    if train_result is not None:
        training_line = (
            "Training: "
            f"epochs_started={train_result.epochs_started} "
            f"final_epoch={train_result.final_epoch} "
            f"final_step={train_result.final_step} "
            f"saves={train_result.saves} "
            f"validations={train_result.validations} "
            f"interrupted={train_result.interrupted} "
            f"total_time={train_result.total_time:.2f}s"
        )
        if train_result.resumed_from is not None:
            training_line += f" resumed_from={train_result.resumed_from}"
        lines.append(f"  {training_line}")
        if train_result.val_metrics:
            lines.append(f"  Final validation: {_metrics_text(train_result.val_metrics)}")
    if validation_metrics is not None:
        source = validated_checkpoint.path if validated_checkpoint is not None else "unknown"
        lines.append(f"  Validation of {source}: {_metrics_text(validation_metrics)}")
    if final_checkpoint is not None:
        lines.append(f"  Final checkpoint: {final_checkpoint.path}")
    return "\n".join(lines)
