"""
Cancellable periodic tasks for the file watcher registry.
"""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class PeriodicTask:
    """
    Runs ``callback`` every ``interval`` seconds on a daemon thread.

    The first run happens one interval after start. ``cancel()`` stops
    further runs; a run already in progress is allowed to finish.
    """

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        name: Optional[str] = None
    ):
        if interval <= 0:
            raise ValueError(f"interval must be > 0, got {interval}")

        self.interval = interval
        self.callback = callback
        self.name = name or "periodic-task"
        self._stopped = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=self.name, daemon=True
        )

    @property
    def cancelled(self) -> bool:
        return self._stopped.is_set()

    def start(self) -> "PeriodicTask":
        self._thread.start()
        return self

    def cancel(self) -> None:
        """Stop scheduling further runs."""
        self._stopped.set()

    def join(self, timeout: Optional[float] = None) -> None:
        self._thread.join(timeout)

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self.callback()
            except Exception:
                logger.exception(f"Periodic task {self.name} failed")


class ThreadScheduler:
    """Creates and starts PeriodicTask handles."""

    def schedule(
        self,
        interval: float,
        callback: Callable[[], None],
        name: Optional[str] = None
    ) -> PeriodicTask:
        """
        Schedule ``callback`` to run every ``interval`` seconds.

        Returns:
            Started PeriodicTask; call ``cancel()`` to stop it
        """
        return PeriodicTask(interval, callback, name=name).start()
