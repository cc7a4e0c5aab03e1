"""Shared fakes: a list-backed data cursor and a counter-only trainable."""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import pytest


class ListCursor:
    """Serves a fixed list of batches once per reset."""

    def __init__(self, batches: list[Any], *, resettable: bool = True) -> None:
        self._batches = list(batches)
        self._resettable = resettable
        self._position = 0
        self.resets = 0

    @property
    def resettable(self) -> bool:
        return self._resettable

    def has_next(self) -> bool:
        return self._position < len(self._batches)

    def next_batch(self) -> Any:
        if not self.has_next():
            raise RuntimeError("exhausted")
        batch = self._batches[self._position]
        self._position += 1
        return batch

    def reset(self) -> None:
        if not self._resettable:
            raise RuntimeError("cursor does not support reset")
        self._position = 0
        self.resets += 1


class FakeTrainable:
    """Counter-only trainable; ``on_step`` runs after every trained batch."""

    def __init__(
        self,
        *,
        batches_per_epoch: int = 4,
        resettable: bool = True,
        on_step: Callable[[FakeTrainable], None] | None = None,
        validate_error: Exception | None = None,
    ) -> None:
        self.batches_per_epoch = batches_per_epoch
        self.resettable = resettable
        self.on_step = on_step
        self.validate_error = validate_error
        self.epoch_count = 0
        self.step_count = 0
        self.built = False
        self.cursors_built: list[ListCursor] = []
        self.seen_batches: list[Any] = []
        self.validations = 0

    def build_model(self) -> None:
        self.built = True
        self.epoch_count = 0
        self.step_count = 0

    def build_data_cursor(self) -> ListCursor:
        cursor = ListCursor(list(range(self.batches_per_epoch)), resettable=self.resettable)
        self.cursors_built.append(cursor)
        return cursor

    def train_step(self, batch: Any) -> None:
        self.seen_batches.append(batch)
        self.step_count += 1
        if self.on_step is not None:
            self.on_step(self)

    def increment_epoch(self) -> None:
        self.epoch_count += 1

    def validate(self) -> dict[str, float]:
        if self.validate_error is not None:
            raise self.validate_error
        self.validations += 1
        return {"val/loss": 1.0 / (1 + self.step_count)}

    def state_dict(self) -> dict[str, Any]:
        return {"epoch": self.epoch_count, "step": self.step_count}

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        self.built = True
        self.epoch_count = int(state["epoch"])
        self.step_count = int(state["step"])


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def fake_trainable_factory() -> Callable[..., Callable[[], FakeTrainable]]:
    def make_factory(**kwargs: Any) -> Callable[[], FakeTrainable]:
        return lambda: FakeTrainable(**kwargs)

    return make_factory


@pytest.fixture
def working_dir(tmp_path: Path) -> Path:
    path = tmp_path / "work"
    path.mkdir()
    return path


@pytest.fixture(autouse=True)
def _reset_package_logger():
    """Undo handlers and ``propagate=False`` left behind by ``configure_logging``."""
    yield
    logger = logging.getLogger("trainrunner")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)
