"""Data cursors wrapping torch dataloaders."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import Any

_MISSING = object()


class LoaderCursor:
    """Cursor over any re-iterable loader, with one batch of lookahead.

    ``has_next`` has to pull a batch from the underlying iterator to answer,
    so that batch is buffered until ``next_batch`` hands it out. Streaming
    sources that cannot be iterated twice should pass ``resettable=False``.
    """

    def __init__(self, loader: Iterable[Any], *, resettable: bool = True) -> None:
        self._loader = loader
        self._resettable = resettable
        self._iterator: Iterator[Any] = iter(loader)
        self._pending: Any = _MISSING
        self._exhausted = False
        self._batches_served = 0

    @property
    def resettable(self) -> bool:
        return self._resettable

    @property
    def batches_served(self) -> int:
        """Batches handed out since construction or the last reset."""
        return self._batches_served

    def has_next(self) -> bool:
        if self._pending is _MISSING and not self._exhausted:
            try:
                self._pending = next(self._iterator)
            except StopIteration:
                self._exhausted = True
        return self._pending is not _MISSING

    def next_batch(self) -> Any:
        if not self.has_next():
            raise RuntimeError("cursor is exhausted; reset or rebuild it first")
        batch, self._pending = self._pending, _MISSING
        self._batches_served += 1
        return batch

    def reset(self) -> None:
        if not self._resettable:
            raise RuntimeError("cursor does not support reset")
        self._iterator = iter(self._loader)
        self._pending = _MISSING
        self._exhausted = False
        self._batches_served = 0
