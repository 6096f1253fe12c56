# MDBMerge - Progress Ticker
# ==========================
"""Indeterminate progress for a running report query."""

import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class ProgressTicker:
    """
    Reports creeping progress on a background thread until stopped.

    The value starts at 0, grows by `step` every `interval` seconds and
    never passes `cap`. stop(complete=True) reports 1.0 once.
    """

    def __init__(self, on_progress: Callable[[float], None],
                 interval: float = 0.3, step: float = 0.05, cap: float = 0.9):
        self.on_progress = on_progress
        self.interval = interval
        self.step = step
        self.cap = cap
        self.value = 0.0

        self._stopped = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self):
        self._emit(0.0)
        self._thread = threading.Thread(
            target=self._run, name="mdbmerge-report-progress", daemon=True
        )
        self._thread.start()

    def _run(self):
        while not self._stopped.wait(self.interval):
            self._emit(min(self.value + self.step, self.cap))

    def stop(self, complete: bool = True):
        """Stop ticking; report 1.0 if the query completed."""
        if self._stopped.is_set():
            return
        self._stopped.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join()
        if complete:
            self._emit(1.0)

    def _emit(self, value: float):
        self.value = value
        try:
            self.on_progress(value)
        except Exception as e:
            logger.error(f"Progress listener failed: {e}")
