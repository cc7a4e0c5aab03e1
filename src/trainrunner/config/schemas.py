"""Pydantic schema models for configuration validation."""

from typing import Self

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RunSectionConfig(BaseModel):
    """Basic run-level configuration."""

    name: str
    seed: int = 1337
    deterministic: bool = True

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class ModelConfig(BaseModel):
    """Model adapter selection and optimizer settings."""

    name: str
    hidden_sizes: list[int] = Field(default_factory=list)
    lr: float = Field(0.01, gt=0.0)
    weight_decay: float = Field(0.0, ge=0.0)
    log_every_steps: int = Field(10, ge=1)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )

    @model_validator(mode="after")
    def check_hidden_sizes(self) -> Self:
        if any(size < 1 for size in self.hidden_sizes):
            raise ValueError("hidden_sizes entries must be positive")
        return self


class DataConfig(BaseModel):
    """Data module selection plus the knobs of the bundled data modules."""

    name: str
    batch_size: int = Field(5, ge=1)
    bit_count: int = Field(1, ge=1)
    train_size: int = Field(20, ge=1)
    val_size: int = Field(10, ge=1)
    train_csv: str | None = None
    val_csv: str | None = None
    num_classes: int | None = Field(None, ge=2)
    has_header: bool = True
    resettable: bool = True

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class ScheduleConfig(BaseModel):
    """Run mode and wall-clock cadence of checkpoints and validation."""

    epochs: int | None = Field(None, ge=1)
    validate_only: bool = False
    save_every_s: float = Field(300.0, ge=0.0)
    validate_every_s: float = Field(60.0, ge=0.0)
    shutdown_poll_s: float = Field(0.1, gt=0.0)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )

    @model_validator(mode="after")
    def check_run_mode(self) -> Self:
        if self.epochs is None and not self.validate_only:
            raise ValueError("either epochs or validate_only must be set")
        if self.epochs is not None and self.validate_only:
            raise ValueError("epochs and validate_only cannot be combined")
        return self


class CheckpointConfig(BaseModel):
    """Checkpoint file naming."""

    prefix: str = Field("checkpoint", min_length=1, pattern=r"^[A-Za-z0-9.\-]+$")
    suffix: str = Field(".pt", min_length=1)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class TrackingConfig(BaseModel):
    """MLflow tracking integration options."""

    enabled: bool = False
    tracking_uri: str = "file:./mlruns"
    experiment: str = "trainrunner"
    run_name: str | None = None

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class LoggingConfig(BaseModel):
    """Structured logging settings for stdout/file output."""

    level: str = Field("INFO", pattern=r"^(DEBUG|INFO|WARNING|ERROR)$")
    json_output: bool = False
    log_to_file: bool = True
    file_name: str = "training.log"

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class OutputConfig(BaseModel):
    """Working directory for checkpoints, logs and the resolved config copy."""

    working_dir: str = "work"
    save_config_copy: bool = True

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )


class RunConfig(BaseModel):
    """Top-level schema that ties every section into one executable run."""

    run: RunSectionConfig
    model: ModelConfig
    data: DataConfig
    schedule: ScheduleConfig
    checkpoint: CheckpointConfig = Field(default_factory=CheckpointConfig)
    tracking: TrackingConfig = Field(default_factory=TrackingConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    model_config = ConfigDict(
        extra="forbid",
        frozen=True,
        validate_default=True,
    )
