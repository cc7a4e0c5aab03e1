"""Training orchestrator: resume or initialise, start epochs, step, save, validate."""

from __future__ import annotations

import enum
import logging
from collections.abc import Callable
from pathlib import Path

from trainrunner.errors import RestoreError, ValidationError
from trainrunner.tracking import NullTracker, Tracker
from trainrunner.training.base import DataCursor, Trainable
from trainrunner.training.checkpoint import Checkpoint, CheckpointStore

logger = logging.getLogger(__name__)


class OrchestratorState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    FRESH_INIT = "fresh_init"
    RESUMING = "resuming"
    EPOCH_LOOP = "epoch_loop"
    STEP_LOOP = "step_loop"
    EPOCH_COMPLETE = "epoch_complete"
    FINISHED = "finished"
    INTERRUPTED = "interrupted"


class Orchestrator:
    """Owns one trainable and its data cursor for the lifetime of the process.

    The orchestrator is driven from a single thread. It holds no schedule
    state; the training loop decides when to save and validate.
    """

    def __init__(
        self,
        factory: Callable[[], Trainable],
        store: CheckpointStore,
        working_dir: str | Path,
        *,
        tracker: Tracker | None = None,
    ) -> None:
        self._factory = factory
        self._store = store
        self._working_dir = Path(working_dir)
        self._tracker: Tracker = tracker or NullTracker()
        self._trainable: Trainable | None = None
        self._cursor: DataCursor | None = None
        self._state = OrchestratorState.UNINITIALIZED
        self._resumed_from: Checkpoint | None = None

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def working_dir(self) -> Path:
        return self._working_dir

    @property
    def resumed_from(self) -> Checkpoint | None:
        """The checkpoint restored by ``initialize``, if any."""
        return self._resumed_from

    @property
    def trainable(self) -> Trainable:
        if self._trainable is None:
            raise RuntimeError("initialize must be called before using the trainable")
        return self._trainable

    @property
    def cursor(self) -> DataCursor | None:
        return self._cursor

    def initialize(self, *, require_checkpoint: bool = False) -> Checkpoint | None:
        """Resume from the newest checkpoint in the working dir, or start fresh.

        With *require_checkpoint* a missing checkpoint raises RestoreError
        instead of building an untrained model.
        """
        if self._state is not OrchestratorState.UNINITIALIZED:
            raise RuntimeError(f"initialize called in state {self._state.value}")

        latest = self._store.find_latest(self._working_dir)
        if latest is None:
            if require_checkpoint:
                raise RestoreError(
                    f"No save state found in {self._working_dir}", self._working_dir
                )
            logger.info("orchestrator: no previous save found, starting from scratch")
            self._state = OrchestratorState.FRESH_INIT
            trainable = self._factory()
            trainable.build_model()
            self._trainable = trainable
        else:
            logger.info("orchestrator: found previous save %s, resuming", latest.path)
            self._state = OrchestratorState.RESUMING
            self._trainable = self._store.restore(latest, self._factory)
            self._resumed_from = latest

        self._state = OrchestratorState.EPOCH_LOOP
        return latest

    def start_epoch(self) -> int:
        """Prepare the data cursor for a new epoch and return the new epoch number."""
        trainable = self.trainable
        if self._cursor is not None and self._cursor.resettable:
            self._cursor.reset()
        else:
            self._cursor = trainable.build_data_cursor()
        trainable.increment_epoch()
        self._state = OrchestratorState.STEP_LOOP
        return trainable.epoch_count

    def step(self) -> bool:
        """Train on one batch. Returns whether the current epoch has more data."""
        if self._cursor is None:
            raise RuntimeError("start_epoch must be called before step")
        if self._cursor.has_next():
            self.trainable.train_step(self._cursor.next_batch())
        more = self._cursor.has_next()
        if not more:
            self._state = OrchestratorState.EPOCH_COMPLETE
        return more

    def save(self) -> Checkpoint:
        """Persist the current trainable to the working directory."""
        checkpoint = self._store.persist(self.trainable, self._working_dir)
        self._tracker.log_checkpoint(checkpoint.path, step=self.trainable.step_count)
        return checkpoint

    def validate(self) -> dict[str, float]:
        """Run the trainable's validation and report its metrics."""
        trainable = self.trainable
        try:
            metrics = dict(trainable.validate())
        except Exception as exc:
            raise ValidationError(
                f"Validation failed at epoch {trainable.epoch_count} "
                f"step {trainable.step_count}: {exc}"
            ) from exc

        self._tracker.log_metrics(metrics, step=trainable.step_count)
        if metrics:
            metrics_text = "  ".join(f"{key}={value:.4f}" for key, value in sorted(metrics.items()))
            logger.info(
                "validate: epoch=%d step=%d  %s",
                trainable.epoch_count,
                trainable.step_count,
                metrics_text,
            )
        return metrics

    def finish(self, *, interrupted: bool) -> None:
        self._state = OrchestratorState.INTERRUPTED if interrupted else OrchestratorState.FINISHED
