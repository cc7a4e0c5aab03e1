from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import torch
from torch import nn

from trainrunner.config.schemas import RunConfig
from trainrunner.models.base import ModelAdapter
from trainrunner.registry import MODELS


def build_mlp(input_dim: int, hidden_sizes: Sequence[int], output_dim: int) -> nn.Sequential:
    """Dense ReLU stack ending in a plain linear layer."""
    layers: list[nn.Module] = []
    width = input_dim
    for hidden in hidden_sizes:
        layers.append(nn.Linear(width, hidden))
        layers.append(nn.ReLU())
        width = hidden
    layers.append(nn.Linear(width, output_dim))
    for layer in layers:
        if isinstance(layer, nn.Linear):
            nn.init.xavier_uniform_(layer.weight)
            nn.init.zeros_(layer.bias)
    return nn.Sequential(*layers)


def _unpack(batch: Any) -> tuple[torch.Tensor, torch.Tensor]:
    if not isinstance(batch, (list, tuple)) or len(batch) != 2:
        raise ValueError("Expected a batch of (inputs, targets).")
    inputs, targets = batch
    if inputs.dim() != 2:
        raise ValueError(f"Expected inputs to be 2D (B, F); got {tuple(inputs.shape)}.")
    return inputs, targets


@MODELS.register("mlp_sigmoid")
class MlpSigmoidAdapter(ModelAdapter):
    """Multi-label bit predictor: sigmoid outputs trained with an L2 loss."""

    def build_model(self, cfg: RunConfig, input_dim: int, output_dim: int) -> nn.Module:
        return nn.Sequential(
            build_mlp(input_dim, cfg.model.hidden_sizes, output_dim),
            nn.Sigmoid(),
        )

    def compute_loss(self, model: nn.Module, batch: Any) -> tuple[torch.Tensor, dict[str, float]]:
        inputs, targets = _unpack(batch)
        outputs = model(inputs)
        if outputs.shape != targets.shape:
            raise ValueError(
                "Expected targets to match model outputs; "
                f"got {tuple(targets.shape)} vs {tuple(outputs.shape)}."
            )
        loss = nn.functional.mse_loss(outputs, targets)
        accuracy = ((outputs > 0.5) == (targets > 0.5)).float().mean()
        return loss, {"loss": loss.item(), "accuracy": accuracy.item()}


@MODELS.register("mlp_softmax")
class MlpSoftmaxAdapter(ModelAdapter):
    """Single-label classifier: logits trained with cross-entropy."""

    def build_model(self, cfg: RunConfig, input_dim: int, output_dim: int) -> nn.Module:
        return build_mlp(input_dim, cfg.model.hidden_sizes, output_dim)

    def compute_loss(self, model: nn.Module, batch: Any) -> tuple[torch.Tensor, dict[str, float]]:
        inputs, targets = _unpack(batch)
        if targets.dim() != 1 or targets.dtype != torch.long:
            raise ValueError(
                "Expected targets to be 1D torch.long class indices; "
                f"got shape {tuple(targets.shape)} dtype {targets.dtype}."
            )
        logits = model(inputs)
        loss = nn.functional.cross_entropy(logits, targets)
        accuracy = (logits.argmax(dim=-1) == targets).float().mean()
        return loss, {"loss": loss.item(), "accuracy": accuracy.item()}
