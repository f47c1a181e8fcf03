"""Cancellable periodic tasks backed by daemon threads.

Usage example:
    from debt_tracker_client.infrastructure.scheduling import PeriodicTask

    sweeper = PeriodicTask(300, cache.purge_expired, name="cache-sweep")
    sweeper.start()
    ...
    sweeper.cancel()
"""

from __future__ import annotations

import threading
from collections.abc import Callable

from ..observability import get_logger

logger = get_logger("debt_tracker_client.infrastructure.scheduling")


class PeriodicTask:
    """Runs `action` every `interval_seconds` until cancelled.

    The first run happens one interval after `start`. A failing action is
    logged and the schedule continues. `cancel` may be called from inside the
    action itself.
    """

    def __init__(
        self,
        interval_seconds: float,
        action: Callable[[], object],
        *,
        name: str = "periodic-task",
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive.")
        self.interval_seconds = interval_seconds
        self.name = name
        self._action = action
        self._lock = threading.Lock()
        self._stop: threading.Event | None = None
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        with self._lock:
            return self._stop is not None and not self._stop.is_set()

    def start(self) -> None:
        """Start the schedule; a no-op when already running."""
        with self._lock:
            if self._stop is not None and not self._stop.is_set():
                return
            stop = threading.Event()
            thread = threading.Thread(target=self._run, args=(stop,), name=self.name, daemon=True)
            self._stop = stop
            self._thread = thread
        thread.start()

    def cancel(self, *, timeout: float | None = 5.0) -> None:
        """Stop the schedule and wait briefly for an in-progress run to finish."""
        with self._lock:
            stop, thread = self._stop, self._thread
            self._stop = None
            self._thread = None
        if stop is None:
            return
        stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def restart(self) -> None:
        """Start a fresh schedule so the next run is a full interval away.

        Does not wait for an in-progress run; it finishes on its own and the
        old thread then exits.
        """
        self.cancel(timeout=0)
        self.start()

    def _run(self, stop: threading.Event) -> None:
        while not stop.wait(self.interval_seconds):
            try:
                self._action()
            except Exception:
                logger.exception("Periodic task %s failed", self.name)
