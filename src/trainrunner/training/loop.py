"""Epoch/step driving loop with wall-clock save and validation schedules."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from trainrunner.training.lifecycle import RunState
from trainrunner.training.orchestrator import Orchestrator

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrainingResult:
    """Outcome of one call to ``TrainingLoop.run``."""

    epochs_started: int
    final_epoch: int
    final_step: int
    saves: int
    validations: int
    interrupted: bool
    total_time: float
    val_metrics: dict[str, float] | None = None
    resumed_from: str | None = None


class IntervalSchedule:
    """Fires when more than ``interval_s`` seconds have passed since the last reset.

    Checked only between steps, so a firing can lag the interval by up to
    one step's duration.
    """

    def __init__(self, interval_s: float, clock: Callable[[], float]) -> None:
        self._interval_s = interval_s
        self._clock = clock
        self._last = clock()

    @property
    def interval_s(self) -> float:
        return self._interval_s

    def elapsed(self) -> float:
        return self._clock() - self._last

    def due(self) -> bool:
        return self.elapsed() > self._interval_s

    def reset(self) -> None:
        self._last = self._clock()


class TrainingLoop:
    """Drives an initialised orchestrator through a fixed number of epochs.

    The stop flag in *run_state* is checked after every ``step()`` return;
    that is the only point where a stop request is observed.
    """

    def __init__(
        self,
        orchestrator: Orchestrator,
        run_state: RunState,
        *,
        save_every_s: float = 300.0,
        validate_every_s: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._orchestrator = orchestrator
        self._run_state = run_state
        self._save_every_s = save_every_s
        self._validate_every_s = validate_every_s
        self._clock = clock
        self._current_epoch = 0

    @property
    def current_epoch(self) -> int:
        """Epoch number returned by the most recent ``start_epoch``."""
        return self._current_epoch

    def run(self, epochs: int) -> TrainingResult:
        """Train for *epochs* epochs or until a stop is requested.

        ``run_state.finish_training`` is called on every exit path.
        """
        orchestrator = self._orchestrator
        run_state = self._run_state
        if not run_state.training_started:
            run_state.begin_training()

        start_time = time.perf_counter()
        save_schedule = IntervalSchedule(self._save_every_s, self._clock)
        validate_schedule = IntervalSchedule(self._validate_every_s, self._clock)
        epochs_started = 0
        saves = 0
        validations = 0
        val_metrics: dict[str, float] | None = None
        interrupted = False

        try:
            for _ in range(epochs):
                if not run_state.running:
                    interrupted = True
                    break
                self._current_epoch = orchestrator.start_epoch()
                epochs_started += 1
                logger.info("loop: starting epoch %d", self._current_epoch)

                while True:
                    more = orchestrator.step()
                    if not run_state.running:
                        interrupted = True
                        break
                    if save_schedule.due():
                        orchestrator.save()
                        saves += 1
                        save_schedule.reset()
                    if validate_schedule.due():
                        val_metrics = orchestrator.validate()
                        validations += 1
                        validate_schedule.reset()
                    if not more:
                        break

                if interrupted:
                    break

            if interrupted:
                logger.info("loop: training interrupted during epoch %d", self._current_epoch)
            else:
                logger.info("loop: training finished, running final validation")
                val_metrics = orchestrator.validate()
                validations += 1
            orchestrator.finish(interrupted=interrupted)

            # Read the counters before releasing the trainable to the shutdown path.
            trainable = orchestrator.trainable
            resumed_from = orchestrator.resumed_from
            result = TrainingResult(
                epochs_started=epochs_started,
                final_epoch=trainable.epoch_count,
                final_step=trainable.step_count,
                saves=saves,
                validations=validations,
                interrupted=interrupted,
                total_time=time.perf_counter() - start_time,
                val_metrics=val_metrics,
                resumed_from=str(resumed_from.path) if resumed_from is not None else None,
            )
        finally:
            run_state.finish_training()

        return result
