"""Torch-backed trainable composed from a registered model adapter and data module."""

from __future__ import annotations

import logging
import random
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import numpy as np
import torch
from torch import nn

from trainrunner.config.schemas import RunConfig
from trainrunner.registry import DATA_MODULES, MODELS, initialize_registries
from trainrunner.training.base import DataCursor

if TYPE_CHECKING:
    from trainrunner.data.base import DataModule
    from trainrunner.models.base import ModelAdapter

logger = logging.getLogger(__name__)


def _batch_size(batch: Any) -> int:
    first = batch[0] if isinstance(batch, (list, tuple)) else batch
    return int(first.shape[0]) if torch.is_tensor(first) else 1


def _capture_rng_states() -> dict[str, Any]:
    rng_states: dict[str, Any] = {
        "python": random.getstate(),
        "numpy": np.random.get_state(),
        "torch": torch.random.get_rng_state(),
    }
    if torch.cuda.is_available():
        rng_states["cuda"] = torch.cuda.get_rng_state_all()
    return rng_states


def _restore_rng_states(rng: Mapping[str, Any]) -> None:
    random.setstate(rng["python"])
    np.random.set_state(rng["numpy"])
    torch.random.set_rng_state(rng["torch"])
    if "cuda" in rng and torch.cuda.is_available():
        torch.cuda.set_rng_state_all(rng["cuda"])


class TorchTrainable:
    """One model plus its optimizer and counters, trained on CPU.

    The model variant is picked by ``cfg.model.name`` and the data by
    ``cfg.data.name``; both are looked up in the registries.
    """

    def __init__(self, cfg: RunConfig) -> None:
        self._cfg = cfg
        initialize_registries()
        adapter_cls = MODELS.get(cfg.model.name)
        data_cls = DATA_MODULES.get(cfg.data.name)
        self._adapter: ModelAdapter = adapter_cls()  # type: ignore[assignment]
        self._data: DataModule = data_cls()  # type: ignore[assignment]
        self._data.setup(cfg)
        self._val_loader = self._data.val_dataloader()

        self._model: nn.Module | None = None
        self._optimizer: torch.optim.Optimizer | None = None
        self._epoch_count = 0
        self._step_count = 0
        self._last_loss: float | None = None

    def __repr__(self) -> str:
        return (
            f"TorchTrainable(model={self._cfg.model.name!r}, data={self._cfg.data.name!r}, "
            f"epoch={self._epoch_count}, step={self._step_count})"
        )

    @property
    def epoch_count(self) -> int:
        return self._epoch_count

    @property
    def step_count(self) -> int:
        return self._step_count

    @property
    def last_loss(self) -> float | None:
        """Training loss of the most recent step."""
        return self._last_loss

    @property
    def model(self) -> nn.Module:
        return self._require_model()[0]

    def build_model(self) -> None:
        if self._cfg.run.deterministic:
            torch.manual_seed(self._cfg.run.seed)
        model = self._adapter.build_model(self._cfg, self._data.input_dim, self._data.output_dim)
        self._model = model
        self._optimizer = torch.optim.Adam(
            model.parameters(),
            lr=self._cfg.model.lr,
            weight_decay=self._cfg.model.weight_decay,
        )
        self._epoch_count = 0
        self._step_count = 0
        parameter_count = sum(param.numel() for param in model.parameters())
        logger.info(
            "trainable: built %s with %d parameters (input_dim=%d, output_dim=%d)",
            self._cfg.model.name,
            parameter_count,
            self._data.input_dim,
            self._data.output_dim,
        )

    def build_data_cursor(self) -> DataCursor:
        return self._data.train_cursor()

    def increment_epoch(self) -> None:
        self._epoch_count += 1

    def train_step(self, batch: Any) -> None:
        model, optimizer = self._require_model()
        model.train()
        optimizer.zero_grad()
        loss, metrics = self._adapter.compute_loss(model, batch)
        loss.backward()
        optimizer.step()

        self._step_count += 1
        self._last_loss = float(metrics.get("loss", loss.item()))
        if self._step_count % self._cfg.model.log_every_steps == 0:
            logger.info(
                "step=%d  epoch=%d  loss=%.4f",
                self._step_count,
                self._epoch_count,
                self._last_loss,
            )

    def validate(self) -> dict[str, float]:
        """Average the adapter metrics over the validation set, weighted by batch size."""
        if self._val_loader is None:
            logger.info("trainable: no validation data configured")
            return {}
        model, _ = self._require_model()

        was_training = model.training
        model.eval()
        sums: dict[str, float] = {}
        count = 0
        with torch.no_grad():
            for batch in self._val_loader:
                _, metrics = self._adapter.compute_loss(model, batch)
                size = _batch_size(batch)
                for key, value in metrics.items():
                    sums[key] = sums.get(key, 0.0) + value * size
                count += size
        if was_training:
            model.train()

        if count == 0:
            return {}
        return {f"val/{key}": total / count for key, total in sums.items()}

    def state_dict(self) -> dict[str, Any]:
        model, optimizer = self._require_model()
        return {
            "epoch": self._epoch_count,
            "step": self._step_count,
            "model_state_dict": model.state_dict(),
            "optimizer_state_dict": optimizer.state_dict(),
            "rng_states": _capture_rng_states(),
            "config": self._cfg.model_dump(),
        }

    def load_state_dict(self, state: Mapping[str, Any]) -> None:
        if self._model is None:
            self.build_model()
        model, optimizer = self._require_model()
        model.load_state_dict(state["model_state_dict"])
        optimizer.load_state_dict(state["optimizer_state_dict"])
        _restore_rng_states(state["rng_states"])
        self._epoch_count = int(state["epoch"])
        self._step_count = int(state["step"])

        saved_config = state.get("config") or {}
        for section in ("model", "data"):
            if saved_config.get(section) != getattr(self._cfg, section).model_dump():
                logger.warning(
                    "checkpoint: %s config mismatch detected; using current config for resume",
                    section,
                )

    def _require_model(self) -> tuple[nn.Module, torch.optim.Optimizer]:
        if self._model is None or self._optimizer is None:
            raise RuntimeError("build_model or load_state_dict must be called first")
        return self._model, self._optimizer
