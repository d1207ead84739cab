# segmenter/sound/UtteranceBuffer.py
from typing import Optional

import numpy as np


class UtteranceBuffer:
    """Fixed-capacity accumulator for the utterance being recorded.

    The sample array is allocated once and overwritten in place; it is never
    resized. Everything past write_pos is kept zeroed, which is what supplies
    the trailing padding on dispatch.

    Recording session fields:
    - is_recording: an utterance has been opened by speech
    - post_speech_samples: length of the current non-speech run
    - write_pos: number of valid samples

    Invariants:
    - 0 <= write_pos <= capacity
    - write_pos == 0 implies not is_recording

    Args:
        capacity: Buffer size in samples
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self.data: np.ndarray = np.zeros(capacity, dtype=np.float32)
        self.write_pos: int = 0
        self.is_recording: bool = False
        self.post_speech_samples: int = 0

    @property
    def capacity(self) -> int:
        return len(self.data)

    @property
    def remaining(self) -> int:
        return self.capacity - self.write_pos

    def append(self, samples: np.ndarray) -> Optional[np.ndarray]:
        """Write samples at write_pos.

        If the samples reach or pass the end of the buffer, the head fills the
        buffer and the tail is returned as overflow. The caller must dispatch
        before writing again.

        Args:
            samples: float32 samples to append

        Returns:
            None if everything fit with room to spare, otherwise the overflow
            samples (possibly empty when the buffer was filled exactly)
        """
        remaining = self.remaining
        if len(samples) >= remaining:
            self.data[self.write_pos:] = samples[:remaining]
            self.write_pos = self.capacity
            return np.array(samples[remaining:], dtype=np.float32, copy=True)

        self.data[self.write_pos:self.write_pos + len(samples)] = samples
        self.write_pos += len(samples)
        return None

    def mark_speech(self) -> None:
        """Window just appended was speech: recording is open, silence run cleared."""
        self.is_recording = True
        self.post_speech_samples = 0

    def mark_silence(self, sample_count: int) -> None:
        """Window just appended was non-speech inside a recording."""
        self.post_speech_samples += sample_count

    def contents(self, padding: int = 0) -> np.ndarray:
        """Copy of the valid samples plus up to padding zero samples after them.

        Padding is clamped at capacity.
        """
        end = min(self.write_pos + padding, self.capacity)
        return self.data[:end].copy()

    def reset(self, seed: Optional[np.ndarray] = None) -> None:
        """Close the recording session.

        Args:
            seed: Overflow samples that start the next buffer, or None
        """
        offset = 0
        if seed is not None and len(seed) > 0:
            offset = min(len(seed), self.capacity)
            self.data[:offset] = seed[:offset]
        self.data[offset:] = 0.0
        self.write_pos = offset
        self.is_recording = False
        self.post_speech_samples = 0
