from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

import torch
from torch import nn

from trainrunner.config.schemas import RunConfig


class ModelAdapter(ABC):
    """Abstract base class for model adapters."""

    @abstractmethod
    def build_model(self, cfg: RunConfig, input_dim: int, output_dim: int) -> nn.Module:
        """Return a freshly initialised model for the given run config and data shape."""

    @abstractmethod
    def compute_loss(self, model: nn.Module, batch: Any) -> tuple[torch.Tensor, dict[str, float]]:
        """Compute a scalar loss and metric values for a single ``(inputs, targets)`` batch."""
