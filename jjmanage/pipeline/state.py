"""Shared state between job handlers and the progress renderer."""

import threading
from collections import Counter
from typing import Callable, Iterable, List


class SupervisorState:
    """
    Running job names plus the "progress line is on screen" flag.

    Names are counted, so two checkouts sharing a display name keep it in the
    running set until both have finished.

    Every method is a short critical section; none of them awaits, so the
    lock is never held across a suspension point.
    """

    def __init__(self, names: Iterable[str]):
        self._lock = threading.Lock()
        self._running = Counter(names)
        self._progress_visible = False

    def running(self) -> List[str]:
        with self._lock:
            return sorted(self._running)

    def finish(self, name: str) -> bool:
        """Mark one job with this name finished; False if none was running."""
        with self._lock:
            if self._running[name] <= 0:
                return False
            self._running[name] -= 1
            if self._running[name] == 0:
                del self._running[name]
            return True

    def take_progress_flag(self) -> bool:
        """Read and clear the progress-visible flag."""
        with self._lock:
            visible = self._progress_visible
            self._progress_visible = False
            return visible

    def draw_progress(self, draw: Callable[[List[str]], None]) -> bool:
        """Call draw with the sorted running names and mark the line visible.

        Returns False without drawing once nothing is running.
        """
        with self._lock:
            if not self._running:
                return False
            draw(sorted(self._running))
            self._progress_visible = True
            return True
