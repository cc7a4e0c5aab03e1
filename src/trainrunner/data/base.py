from __future__ import annotations

from abc import ABC, abstractmethod

from torch.utils.data import DataLoader

from trainrunner.config.schemas import RunConfig
from trainrunner.training.base import DataCursor


class DataModule(ABC):
    """Abstract base class for data modules."""

    @abstractmethod
    def setup(self, cfg: RunConfig) -> None:
        """Prepare datasets and internal state needed for cursors and loaders."""

    @property
    @abstractmethod
    def input_dim(self) -> int:
        """Number of input features per example."""

    @property
    @abstractmethod
    def output_dim(self) -> int:
        """Width of the model output (targets or classes)."""

    @abstractmethod
    def train_cursor(self) -> DataCursor:
        """Return a new cursor over the training batches."""

    @abstractmethod
    def val_dataloader(self) -> DataLoader | None:
        """Return the validation dataloader, or None if not provided."""
