# segmenter/sound/LookbackRing.py
from collections import deque
from typing import Deque, List

from ..types import AnalysisWindow


class LookbackRing:
    """Bounded FIFO of the most recent idle windows (speech pre-roll).

    Written only while idle. Reading returns a copy in chronological order
    and leaves the ring intact.

    Args:
        capacity: Maximum number of windows kept
    """

    def __init__(self, capacity: int):
        if capacity < 0:
            raise ValueError(f"capacity must not be negative, got {capacity}")
        self.capacity: int = capacity
        self._windows: Deque[AnalysisWindow] = deque()

    def push(self, window: AnalysisWindow) -> None:
        """Add window, evicting the oldest one first when full."""
        if self.capacity == 0:
            return
        if len(self._windows) >= self.capacity:
            self._windows.popleft()
        self._windows.append(window)

    def snapshot(self) -> List[AnalysisWindow]:
        """Return the stored windows, oldest first, without removing them."""
        return list(self._windows)

    def clear(self) -> None:
        self._windows.clear()

    def __len__(self) -> int:
        return len(self._windows)
