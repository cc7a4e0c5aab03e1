"""Capability protocols the orchestrator drives: trainables and their data cursors."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol


class DataCursor(Protocol):
    """Forward-only source of training batches for one epoch."""

    @property
    def resettable(self) -> bool:
        """Whether ``reset`` can rewind the cursor in place."""

    def has_next(self) -> bool:
        """Return True while at least one batch remains."""

    def next_batch(self) -> Any:
        """Return the next batch; only valid while ``has_next`` is True."""

    def reset(self) -> None:
        """Rewind to the first batch."""


class Trainable(Protocol):
    """Opaque, model-specific unit driven by the orchestrator.

    Implementations own the weights, the optimizer state, and the epoch and
    step counters. They never touch the filesystem: the checkpoint store
    writes whatever ``state_dict`` returns and feeds it back through
    ``load_state_dict``.
    """

    @property
    def epoch_count(self) -> int:
        """Number of epochs started so far."""

    @property
    def step_count(self) -> int:
        """Number of training updates applied so far."""

    def build_model(self) -> None:
        """Initialise fresh weights and optimizer state."""

    def build_data_cursor(self) -> DataCursor:
        """Return a new cursor positioned at the first training batch."""

    def train_step(self, batch: Any) -> None:
        """Apply one training update for *batch* and advance the step counter."""

    def increment_epoch(self) -> None:
        """Advance the epoch counter by one."""

    def validate(self) -> Mapping[str, float]:
        """Evaluate the current model and return its metrics."""

    def state_dict(self) -> dict[str, Any]:
        """Return everything needed to resume training bit-identically."""

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        """Replace the current state with one produced by ``state_dict``."""
