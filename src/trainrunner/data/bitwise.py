from __future__ import annotations

from typing import ClassVar

import torch
from torch.utils.data import DataLoader, TensorDataset

from trainrunner.config.schemas import RunConfig
from trainrunner.data.base import DataModule
from trainrunner.data.cursor import LoaderCursor
from trainrunner.registry import DATA_MODULES


def make_bit_pairs(
    num_examples: int,
    bit_count: int,
    op: str,
    generator: torch.Generator,
) -> tuple[torch.Tensor, torch.Tensor]:
    """Return ``(inputs, targets)`` for random operand pairs combined bit by bit.

    Inputs hold operand A in the first ``bit_count`` columns and operand B in
    the rest; targets hold ``A op B``.
    """
    bits_a = torch.randint(0, 2, (num_examples, bit_count), generator=generator, dtype=torch.bool)
    bits_b = torch.randint(0, 2, (num_examples, bit_count), generator=generator, dtype=torch.bool)
    if op == "and":
        result = bits_a & bits_b
    elif op == "or":
        result = bits_a | bits_b
    else:
        raise ValueError(f"Unsupported bit operation '{op}'; expected 'and' or 'or'.")
    inputs = torch.cat([bits_a, bits_b], dim=1).float()
    return inputs, result.float()


class _BitwiseDataModule(DataModule):
    """Synthetic bitwise-operation data; the training set is drawn once per process."""

    op: ClassVar[str]

    def __init__(self) -> None:
        self._cfg: RunConfig | None = None
        self._train_dataset: TensorDataset | None = None
        self._val_dataset: TensorDataset | None = None

    def setup(self, cfg: RunConfig) -> None:
        self._cfg = cfg
        bit_count = cfg.data.bit_count
        seed = cfg.run.seed
        if not cfg.run.deterministic:
            seed = int(torch.randint(0, 2**31 - 1, (1,)).item())
        train_gen = torch.Generator().manual_seed(seed)
        val_gen = torch.Generator().manual_seed(seed + 1000)
        self._train_dataset = TensorDataset(
            *make_bit_pairs(cfg.data.train_size, bit_count, self.op, train_gen)
        )
        self._val_dataset = TensorDataset(
            *make_bit_pairs(cfg.data.val_size, bit_count, self.op, val_gen)
        )

    @property
    def input_dim(self) -> int:
        return 2 * self._require_cfg().data.bit_count

    @property
    def output_dim(self) -> int:
        return self._require_cfg().data.bit_count

    def train_cursor(self) -> LoaderCursor:
        cfg = self._require_cfg()
        if self._train_dataset is None:
            raise RuntimeError("setup must be called before train_cursor")
        loader = DataLoader(
            self._train_dataset,
            batch_size=cfg.data.batch_size,
            shuffle=not cfg.run.deterministic,
            num_workers=0,
        )
        return LoaderCursor(loader, resettable=cfg.data.resettable)

    def val_dataloader(self) -> DataLoader | None:
        self._require_cfg()
        if self._val_dataset is None:
            return None
        return DataLoader(self._val_dataset, batch_size=1, shuffle=False, num_workers=0)

    def _require_cfg(self) -> RunConfig:
        if self._cfg is None:
            raise RuntimeError("setup must be called before using the data module")
        return self._cfg


@DATA_MODULES.register("binary_and")
class BinaryAndDataModule(_BitwiseDataModule):
    """Learn ``A AND B`` bit by bit."""

    op = "and"


@DATA_MODULES.register("binary_or")
class BinaryOrDataModule(_BitwiseDataModule):
    """Learn ``A OR B`` bit by bit."""

    op = "or"
