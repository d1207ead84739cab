# segmenter/sound/FrameSplitter.py
import numpy as np
from typing import List, Optional

from ..types import AnalysisWindow


class FrameSplitter:
    """Cuts arbitrarily sized audio frames into fixed analysis windows.

    Samples that do not fill a whole window are kept as the pending remainder
    and prepended to the next frame. Sample order is preserved exactly and a
    partial window is never emitted.

    Window timestamps are derived from the frame timestamp assuming a
    continuous stream: the remainder is taken to end where the new frame
    starts.

    Args:
        window_size: Samples per analysis window
        sample_rate: Audio sample rate in Hz
    """

    def __init__(self, window_size: int, sample_rate: int = 16000):
        if window_size <= 0:
            raise ValueError(f"window_size must be positive, got {window_size}")
        self.window_size: int = window_size
        self.sample_rate: int = sample_rate
        self.pending: np.ndarray = np.zeros(0, dtype=np.float32)

    def split(self, frame: np.ndarray, timestamp: Optional[float] = None) -> List[AnalysisWindow]:
        """Append frame to the remainder and return every complete window.

        Args:
            frame: 1-D float PCM samples of any length
            timestamp: Capture time of frame[0] in seconds, or None

        Returns:
            Zero or more AnalysisWindows of exactly window_size samples

        Raises:
            ValueError: frame is not a 1-D floating point array
        """
        frame = np.asarray(frame)
        if frame.ndim != 1:
            raise ValueError(f"Audio frame must be 1-D mono, got shape {frame.shape}")
        if not np.issubdtype(frame.dtype, np.floating):
            raise ValueError(f"Audio frame must be floating point PCM, got {frame.dtype}")

        if len(frame) == 0:
            return []

        if len(self.pending) > 0:
            combined = np.concatenate([self.pending, frame.astype(np.float32, copy=False)])
        else:
            combined = frame.astype(np.float32, copy=False)

        combined_start = None
        if timestamp is not None:
            combined_start = timestamp - len(self.pending) / self.sample_rate

        windows: List[AnalysisWindow] = []
        offset = 0
        while offset + self.window_size <= len(combined):
            window_time = None
            if combined_start is not None:
                window_time = combined_start + offset / self.sample_rate
            windows.append(AnalysisWindow(
                samples=combined[offset:offset + self.window_size].copy(),
                timestamp=window_time
            ))
            offset += self.window_size

        self.pending = combined[offset:].copy()
        return windows

    def reset(self) -> None:
        """Drop the pending remainder."""
        self.pending = np.zeros(0, dtype=np.float32)
