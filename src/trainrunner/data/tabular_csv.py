from __future__ import annotations

from pathlib import Path

import numpy as np
import torch
from torch.utils.data import DataLoader, TensorDataset

from trainrunner.config.schemas import RunConfig
from trainrunner.data.base import DataModule
from trainrunner.data.cursor import LoaderCursor
from trainrunner.registry import DATA_MODULES


def load_numeric_csv(path: str | Path, *, has_header: bool) -> tuple[np.ndarray, np.ndarray]:
    """Load a preprocessed numeric CSV whose last column is an integer class label."""
    table = np.loadtxt(
        path,
        delimiter=",",
        skiprows=1 if has_header else 0,
        dtype=np.float32,
        ndmin=2,
    )
    if table.shape[1] < 2:
        raise ValueError(f"{path}: expected at least one feature column and a label column")
    features = table[:, :-1]
    labels = table[:, -1].astype(np.int64)
    return features, labels


@DATA_MODULES.register("tabular_csv")
class TabularCsvDataModule(DataModule):
    """Classification data from already-normalised CSV files (label in the last column)."""

    def __init__(self) -> None:
        self._cfg: RunConfig | None = None
        self._train_dataset: TensorDataset | None = None
        self._val_dataset: TensorDataset | None = None
        self._input_dim = 0
        self._num_classes = 0

    def setup(self, cfg: RunConfig) -> None:
        if cfg.data.train_csv is None:
            raise ValueError("data.train_csv is required for the tabular_csv data module")
        self._cfg = cfg
        features, labels = load_numeric_csv(cfg.data.train_csv, has_header=cfg.data.has_header)
        self._input_dim = int(features.shape[1])
        self._train_dataset = TensorDataset(torch.from_numpy(features), torch.from_numpy(labels))

        all_labels = [labels]
        if cfg.data.val_csv is not None:
            val_features, val_labels = load_numeric_csv(
                cfg.data.val_csv, has_header=cfg.data.has_header
            )
            if val_features.shape[1] != self._input_dim:
                raise ValueError(
                    f"{cfg.data.val_csv}: expected {self._input_dim} feature columns, "
                    f"got {val_features.shape[1]}"
                )
            self._val_dataset = TensorDataset(
                torch.from_numpy(val_features), torch.from_numpy(val_labels)
            )
            all_labels.append(val_labels)

        if cfg.data.num_classes is not None:
            self._num_classes = cfg.data.num_classes
        else:
            self._num_classes = int(max(int(part.max()) for part in all_labels)) + 1
        if any(int(part.min()) < 0 or int(part.max()) >= self._num_classes for part in all_labels):
            raise ValueError(f"labels must lie in [0, {self._num_classes})")

    @property
    def input_dim(self) -> int:
        return self._input_dim

    @property
    def output_dim(self) -> int:
        return self._num_classes

    def train_cursor(self) -> LoaderCursor:
        if self._cfg is None or self._train_dataset is None:
            raise RuntimeError("setup must be called before train_cursor")
        loader = DataLoader(
            self._train_dataset,
            batch_size=self._cfg.data.batch_size,
            shuffle=not self._cfg.run.deterministic,
            num_workers=0,
        )
        return LoaderCursor(loader, resettable=self._cfg.data.resettable)

    def val_dataloader(self) -> DataLoader | None:
        if self._cfg is None:
            raise RuntimeError("setup must be called before val_dataloader")
        if self._val_dataset is None:
            return None
        return DataLoader(
            self._val_dataset,
            batch_size=self._cfg.data.batch_size,
            shuffle=False,
            num_workers=0,
        )
