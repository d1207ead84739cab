"""Type definitions for segmentation engine messages and events."""

from dataclasses import dataclass
from typing import Literal, Optional
import numpy as np
import numpy.typing as npt


EventType = Literal[
    'loading',
    'ready',
    'info',
    'recording_started',
    'recording_ended',
    'segment_ready',
    'error',
    'reset_complete',
    'unloaded',
]


@dataclass(frozen=True)
class AnalysisWindow:
    """Fixed-length block of PCM samples produced by FrameSplitter.

    Attributes:
        samples: float32 samples, exactly window_size long, read-only
        timestamp: Capture time of the first sample in seconds since the epoch,
                   or None when the source frames carried no timestamp
    """
    samples: npt.NDArray[np.float32]
    timestamp: Optional[float] = None

    def __post_init__(self):
        self.samples.flags.writeable = False

    def __len__(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class SegmentTiming:
    """Wall-clock placement of a dispatched utterance, in seconds."""
    start: float
    end: float
    duration: float


@dataclass
class SpeechSegment:
    """Completed utterance handed from SegmentDispatcher to the Transcriber.

    samples is laid out as [lookback][utterance][padding]; the three length
    fields describe that layout.

    Attributes:
        segment_id: Monotonic id in production order
        samples: Contiguous float32 audio for recognition
        timing: Start/end/duration computed at dispatch time
        lookback_samples: Number of leading pre-roll samples
        utterance_samples: Number of buffered utterance samples
        padding_samples: Number of trailing padding samples
    """
    segment_id: int
    samples: npt.NDArray[np.float32]
    timing: SegmentTiming
    lookback_samples: int
    utterance_samples: int
    padding_samples: int

    def __post_init__(self):
        expected = self.lookback_samples + self.utterance_samples + self.padding_samples
        if len(self.samples) != expected:
            raise ValueError(
                f"Segment length {len(self.samples)} does not match layout {expected}"
            )


@dataclass
class EngineEvent:
    """Notification sent from the engine side to subscribers (UI, logs, tests).

    Attributes:
        type: Event discriminator
        message: Human readable status or error text
        text: Recognized text for 'segment_ready'
        timing: Segment timing for 'segment_ready' and transcription errors
        segment_id: Id of the segment the event refers to, if any
    """
    type: EventType
    message: str = ''
    text: str = ''
    timing: Optional[SegmentTiming] = None
    segment_id: Optional[int] = None
