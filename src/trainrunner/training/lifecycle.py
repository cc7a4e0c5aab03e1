"""Cross-thread run-state flags shared by the training loop and the shutdown path."""

from __future__ import annotations

import logging
import threading

logger = logging.getLogger(__name__)


class RunState:
    """The only state shared between the training thread and the shutdown path.

    ``running`` flips to False once, when a stop is requested.
    ``training_active`` is True between ``begin_training`` and
    ``finish_training``; each transition happens at most once.
    """

    def __init__(self) -> None:
        self._stop_requested = threading.Event()
        self._started = threading.Event()
        self._finished = threading.Event()
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return not self._stop_requested.is_set()

    @property
    def training_started(self) -> bool:
        return self._started.is_set()

    @property
    def training_active(self) -> bool:
        return self._started.is_set() and not self._finished.is_set()

    def request_stop(self) -> bool:
        """Clear ``running``. Returns False if a stop was already requested."""
        with self._lock:
            if self._stop_requested.is_set():
                return False
            self._stop_requested.set()
        logger.debug("lifecycle: stop requested")
        return True

    def begin_training(self) -> None:
        with self._lock:
            if self._started.is_set():
                raise RuntimeError("training was already started for this run")
            self._started.set()

    def finish_training(self) -> None:
        with self._lock:
            if not self._started.is_set():
                raise RuntimeError("finish_training called before begin_training")
            self._finished.set()

    def wait_until_idle(self, poll_interval: float = 0.1) -> bool:
        """Block until training has fully stopped, polling every *poll_interval* seconds.

        Returns False immediately when training was never started.
        """
        if not self._started.is_set():
            return False
        while not self._finished.wait(poll_interval):
            logger.debug("lifecycle: waiting for training to stop")
        return True
