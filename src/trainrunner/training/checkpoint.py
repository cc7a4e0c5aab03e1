"""Checkpoint store: naming, discovery, persist and restore.

Checkpoints are single files named
``<prefix>_<YYYY-mm-dd_HH-MM-SS>_<epoch>_<step><suffix>``. The timestamp
field is fixed-width, so picking the greatest name picks the newest
checkpoint without opening any file.
"""

from __future__ import annotations

import logging
import os
import pickle
from collections.abc import Callable
from contextlib import suppress
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, TypedDict

import torch

from trainrunner.errors import PersistError, RestoreError
from trainrunner.training.base import Trainable

logger = logging.getLogger(__name__)

CHECKPOINT_TIME_FORMAT = "%Y-%m-%d_%H-%M-%S"
PAYLOAD_FORMAT_VERSION = 1


class CheckpointPayload(TypedDict):
    """Typed dict describing what lives inside a checkpoint file."""

    format_version: int
    created_at: str
    epoch: int
    step: int
    state: dict[str, Any]


@dataclass(frozen=True)
class Checkpoint:
    """A checkpoint file plus the fields encoded in its name.

    ``created_at``, ``epoch`` and ``step`` are None when the name matches the
    prefix and suffix but its middle fields do not parse.
    """

    path: Path
    created_at: datetime | None = None
    epoch: int | None = None
    step: int | None = None

    @property
    def name(self) -> str:
        return self.path.name


def build_checkpoint_name(
    prefix: str, suffix: str, created_at: datetime, epoch: int, step: int
) -> str:
    """Return the canonical file name for a checkpoint."""
    return f"{prefix}_{created_at.strftime(CHECKPOINT_TIME_FORMAT)}_{epoch}_{step}{suffix}"


def parse_checkpoint_name(
    name: str, prefix: str, suffix: str
) -> tuple[datetime, int, int] | None:
    """Return ``(created_at, epoch, step)`` from a canonical name, or None if malformed."""
    head = f"{prefix}_"
    if not (name.startswith(head) and name.endswith(suffix)):
        return None
    middle = name[len(head) : len(name) - len(suffix)]
    parts = middle.rsplit("_", 2)
    if len(parts) != 3:
        return None
    stamp, epoch_text, step_text = parts
    if not (epoch_text.isdigit() and step_text.isdigit()):
        return None
    try:
        created_at = datetime.strptime(stamp, CHECKPOINT_TIME_FORMAT)
    except ValueError:
        return None
    return created_at, int(epoch_text), int(step_text)


class CheckpointStore:
    """Discovers, names, writes, and reads checkpoints in a directory.

    The store never deletes checkpoints.
    """

    def __init__(
        self,
        prefix: str = "checkpoint",
        suffix: str = ".pt",
        *,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self._prefix = prefix
        self._suffix = suffix
        self._clock = clock

    @property
    def prefix(self) -> str:
        return self._prefix

    @property
    def suffix(self) -> str:
        return self._suffix

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    def matches(self, name: str) -> bool:
        """Whether *name* follows the naming convention (prefix and suffix only)."""
        return name.startswith(f"{self._prefix}_") and name.endswith(self._suffix)

    def describe(self, path: str | Path) -> Checkpoint:
        """Build a Checkpoint for *path*, parsing its name leniently."""
        path = Path(path)
        parsed = parse_checkpoint_name(path.name, self._prefix, self._suffix)
        if parsed is None:
            return Checkpoint(path=path)
        created_at, epoch, step = parsed
        return Checkpoint(path=path, created_at=created_at, epoch=epoch, step=step)

    def list_checkpoints(self, location: str | Path) -> list[Checkpoint]:
        """Return every readable checkpoint directly under *location*, oldest first."""
        directory = Path(location)
        if not directory.is_dir():
            return []
        found = [
            entry
            for entry in directory.iterdir()
            if self.matches(entry.name) and entry.is_file() and os.access(entry, os.R_OK)
        ]
        return [self.describe(entry) for entry in sorted(found, key=lambda p: p.name)]

    def find_latest(self, location: str | Path) -> Checkpoint | None:
        """Return the checkpoint with the lexicographically greatest name, or None."""
        checkpoints = self.list_checkpoints(location)
        if not checkpoints:
            return None
        return checkpoints[-1]

    # ------------------------------------------------------------------
    # Persist / restore
    # ------------------------------------------------------------------

    def persist(self, trainable: Trainable, location: str | Path) -> Checkpoint:
        """Write the full state of *trainable* under *location* and return its Checkpoint."""
        created_at = self._clock().replace(microsecond=0)
        epoch = trainable.epoch_count
        step = trainable.step_count
        path = Path(location) / build_checkpoint_name(
            self._prefix, self._suffix, created_at, epoch, step
        )
        tmp_path = path.with_name(f"{path.name}.tmp")

        try:
            payload: CheckpointPayload = {
                "format_version": PAYLOAD_FORMAT_VERSION,
                "created_at": created_at.isoformat(),
                "epoch": epoch,
                "step": step,
                "state": trainable.state_dict(),
            }
            path.parent.mkdir(parents=True, exist_ok=True)
            torch.save(payload, tmp_path)
            tmp_path.replace(path)
        except Exception as exc:
            # Any failure, including unpicklable state, leaves no partial file.
            with suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise PersistError(f"Could not save checkpoint to {path}: {exc}", path) from exc

        logger.info("checkpoint: saved epoch %d step %d to %s", epoch, step, path)
        return Checkpoint(path=path, created_at=created_at, epoch=epoch, step=step)

    def load_payload(self, identifier: Checkpoint | str | Path) -> CheckpointPayload:
        """Read and sanity-check the raw payload of a checkpoint file."""
        path = identifier.path if isinstance(identifier, Checkpoint) else Path(identifier)
        try:
            payload = torch.load(path, map_location="cpu", weights_only=False)
        except (OSError, RuntimeError, EOFError, pickle.UnpicklingError, ValueError) as exc:
            raise RestoreError(f"Could not load checkpoint from {path}: {exc}", path) from exc

        if not isinstance(payload, dict) or not isinstance(payload.get("state"), dict):
            raise RestoreError(f"Could not load checkpoint from {path}: not a checkpoint", path)
        return payload  # type: ignore[return-value]

    def restore(
        self, identifier: Checkpoint | str | Path, factory: Callable[[], Trainable]
    ) -> Trainable:
        """Rebuild a trainable from a persisted checkpoint.

        *factory* returns an empty trainable; the stored state is loaded into it.
        """
        path = identifier.path if isinstance(identifier, Checkpoint) else Path(identifier)
        payload = self.load_payload(path)
        trainable = factory()
        try:
            trainable.load_state_dict(payload["state"])
        except (KeyError, TypeError, ValueError, RuntimeError) as exc:
            raise RestoreError(f"Could not decode checkpoint {path}: {exc}", path) from exc

        logger.info(
            "checkpoint: restored epoch %d step %d from %s",
            trainable.epoch_count,
            trainable.step_count,
            path,
        )
        return trainable
