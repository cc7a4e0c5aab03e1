"""Graceful shutdown: stop the loop at a step boundary, then force one checkpoint."""

from __future__ import annotations

import logging
import signal
import threading
from collections.abc import Callable, Iterable
from types import FrameType
from typing import Any

from trainrunner.training.lifecycle import RunState

logger = logging.getLogger(__name__)

DEFAULT_SIGNALS: tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


class ShutdownCoordinator:
    """Turns a termination request into "stop training, wait, save once".

    Signal handlers run on the main thread, which is also the thread driving
    the training loop, so the handler only flips the stop flag and hands the
    wait-and-save work to a drain thread. The save runs only after the loop
    has returned, so the trainable is never used from two threads at once.
    """

    def __init__(
        self,
        run_state: RunState,
        save: Callable[[], Any],
        *,
        poll_interval: float = 0.1,
    ) -> None:
        self._run_state = run_state
        self._save = save
        self._poll_interval = poll_interval
        # Acquired once and never released; a handler re-entering mid-request fails to take it.
        self._claim = threading.Lock()
        self._started = threading.Event()
        self._thread = threading.Thread(
            target=self._drain_and_save,
            name="trainrunner-shutdown",
            daemon=False,
        )
        self._error: Exception | None = None
        self._saved: Any = None
        self._signal_received: int | None = None
        self._previous_handlers: dict[signal.Signals, Any] = {}

    @property
    def requested(self) -> bool:
        return self._claim.locked()

    @property
    def signal_received(self) -> int | None:
        """First signal number that triggered the shutdown, if any."""
        return self._signal_received

    @property
    def saved(self) -> Any:
        """Whatever ``save`` returned for the forced checkpoint, or None."""
        return self._saved

    def install(self, signals: Iterable[signal.Signals] = DEFAULT_SIGNALS) -> None:
        """Route *signals* to this coordinator. Must be called from the main thread."""
        for signum in signals:
            self._previous_handlers[signum] = signal.getsignal(signum)
            signal.signal(signum, self._handle_signal)

    def uninstall(self) -> None:
        """Restore the handlers that were active before ``install``."""
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()

    def _handle_signal(self, signum: int, frame: FrameType | None) -> None:
        del frame
        name = signal.Signals(signum).name
        if self._signal_received is None:
            self._signal_received = signum
        self.request_shutdown(reason=name)

    def request_shutdown(self, reason: str = "requested") -> bool:
        """Stop the loop and schedule the forced save. Only the first call has an effect."""
        if not self._claim.acquire(blocking=False):
            logger.info("shutdown: %s ignored, shutdown already in progress", reason)
            return False
        logger.info("shutdown: %s received, stopping training", reason)
        self._run_state.request_stop()
        self._thread.start()
        self._started.set()
        return True

    def _drain_and_save(self) -> None:
        if not self._run_state.wait_until_idle(self._poll_interval):
            logger.info("shutdown: training never started, nothing to save")
            return
        logger.info("shutdown: training stopped, saving final state")
        try:
            self._saved = self._save()
        except Exception as exc:  # re-raised from join() on the caller's thread
            self._error = exc

    def join(self, timeout: float | None = None) -> None:
        """Wait for the drain thread and re-raise any failure of the forced save."""
        if not self.requested:
            return
        self._started.wait(timeout)
        if self._thread.ident is not None:
            self._thread.join(timeout)
        if self._error is not None:
            error, self._error = self._error, None
            raise error

    def shutdown(self) -> None:
        """Process-exit path: request a shutdown if none is pending, then wait for it."""
        self.request_shutdown(reason="process exit")
        self.join()
