"""Progress and throughput tracking for transfers."""
import threading
import time
from collections import deque
from typing import Callable, Optional

from ..utils import to_human_readable_size

SPEED_WINDOW_SECONDS = 10


class SpeedSummary:
    """Tracks completed bytes of one transfer.

    Chunk workers call ``increment`` concurrently; every mutation holds the
    lock. Derived figures are computed when read.
    """

    def __init__(self, name: str = '', total_size: Optional[int] = None):
        self.name = name
        self.total_size = total_size
        self.complete_size = 0
        self._start_time = time.time()
        self._history = deque()
        self._lock = threading.Lock()

    def reset(self, total_size: Optional[int] = None) -> None:
        with self._lock:
            self.total_size = total_size
            self.complete_size = 0
            self._start_time = time.time()
            self._history.clear()

    def increment(self, size: int) -> int:
        """Add ``size`` completed bytes and return the new complete size."""
        with self._lock:
            completed = self.complete_size + size
            if self.total_size is not None:
                completed = min(completed, self.total_size)
            self.complete_size = completed
            now = time.time()
            self._history.append((now, size))
            self._trim_history(now)
            return completed

    def get_auto_increment_function(self, size: int) -> Callable[[], int]:
        """Return a callback that increments by ``size`` each time it is called."""
        def increment():
            return self.increment(size)
        return increment

    def get_total_size(self, human_readable: bool = True):
        size = self.total_size or 0
        return to_human_readable_size(size) if human_readable else size

    def get_complete_size(self, human_readable: bool = True):
        size = self.complete_size
        return to_human_readable_size(size) if human_readable else size

    def get_complete_percent(self, precision: int = 1) -> str:
        with self._lock:
            total = self.total_size
            completed = self.complete_size
        if not total:
            percent = 100.0 if total == 0 else 0.0
        else:
            percent = completed / total * 100
        return f"{percent:.{precision}f}"

    def get_elapsed_seconds(self, human_readable: bool = True):
        seconds = int(time.time() - self._start_time)
        if not human_readable:
            return seconds
        hours, remainder = divmod(seconds, 3600)
        minutes, seconds = divmod(remainder, 60)
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}"

    def get_average_speed(self, human_readable: bool = True):
        elapsed = max(self.get_elapsed_seconds(False), 1)
        speed = self.complete_size / elapsed
        return _format_speed(speed) if human_readable else speed

    def get_speed(self, human_readable: bool = True):
        """Throughput over the last few seconds."""
        now = time.time()
        with self._lock:
            self._trim_history(now)
            window_bytes = sum(size for stamp, size in self._history)
            oldest = self._history[0][0] if self._history else now
        elapsed = now - oldest
        speed = window_bytes / elapsed if elapsed >= 1 else 0
        return _format_speed(speed) if human_readable else speed

    def _trim_history(self, now: float) -> None:
        while self._history and now - self._history[0][0] > SPEED_WINDOW_SECONDS:
            self._history.popleft()

    def __repr__(self):
        return (f"SpeedSummary({self.name!r}, {self.get_complete_size()}/{self.get_total_size()}, "
                f"{self.get_complete_percent()}%)")


def _format_speed(speed: float) -> str:
    if speed == 0:
        return '0B/S'
    return to_human_readable_size(speed) + '/S'
