# segmenter/sound/SegmentDispatcher.py
"""
Assembles completed utterances and hands them to the transcription queue.

Tests for this module:
- tests/test_segment_dispatcher.py
"""
from __future__ import annotations
import logging
import queue
import time
from typing import Callable, List, Optional, TYPE_CHECKING

import numpy as np

from ..types import AnalysisWindow, EngineEvent, SegmentTiming, SpeechSegment

if TYPE_CHECKING:
    from segmenter.EventPublisher import EventPublisher
    from segmenter.sound.UtteranceBuffer import UtteranceBuffer


class SegmentDispatcher:
    """Builds [lookback][utterance][padding] segments and enqueues them.

    Dispatch never blocks ingestion: segments go to segment_queue with
    put_nowait and the Transcriber consumes them on its own threads. If the
    queue is bounded and full, the segment is reported through an 'error'
    event carrying its timing instead of disappearing.

    Timing is reconstructed backwards from the end of the buffered audio:
        end      = buffer_end - (post_speech_samples + speech_pad_samples) / sample_rate
        start    = end - write_pos / sample_rate
        duration = end - start
    buffer_end is the capture time of the end of the last window when windows
    carry timestamps, otherwise the wall clock at dispatch time.

    Args:
        segment_queue: Output queue read by the Transcriber
        publisher: EventPublisher for overflow-of-queue errors
        sample_rate: Audio sample rate in Hz
        speech_pad_samples: Trailing padding appended to every segment
        clock: Wall-clock source in seconds (time.time by default)
        verbose: Enable verbose logging
    """

    def __init__(self,
                 segment_queue: queue.Queue,
                 publisher: 'EventPublisher',
                 sample_rate: int,
                 speech_pad_samples: int,
                 clock: Callable[[], float] = time.time,
                 verbose: bool = False):
        self.segment_queue: queue.Queue = segment_queue
        self.publisher: 'EventPublisher' = publisher
        self.sample_rate: int = sample_rate
        self.speech_pad_samples: int = speech_pad_samples
        self.clock: Callable[[], float] = clock
        self.verbose: bool = verbose
        self.segment_id_counter: int = 0
        self.undelivered_segments: int = 0

    def compute_timing(self,
                       write_pos: int,
                       post_speech_samples: int,
                       buffer_end: Optional[float] = None) -> SegmentTiming:
        """Work out start/end/duration in seconds for the buffered utterance."""
        if buffer_end is None:
            buffer_end = self.clock()
        end = buffer_end - (post_speech_samples + self.speech_pad_samples) / self.sample_rate
        start = end - write_pos / self.sample_rate
        return SegmentTiming(start=start, end=end, duration=end - start)

    def build_segment(self,
                      buffer: 'UtteranceBuffer',
                      lookback: List[AnalysisWindow],
                      buffer_end: Optional[float] = None) -> SpeechSegment:
        """Assemble one contiguous segment from the lookback windows and buffer.

        Args:
            buffer: Utterance buffer holding write_pos valid samples
            lookback: Pre-onset windows, oldest first
            buffer_end: Capture time of the end of the buffered audio, or None

        Returns:
            SpeechSegment with a fresh segment_id
        """
        utterance = buffer.contents(padding=self.speech_pad_samples)
        padding_samples = len(utterance) - buffer.write_pos

        if lookback:
            lookback_audio = np.concatenate([w.samples for w in lookback])
        else:
            lookback_audio = np.zeros(0, dtype=np.float32)

        timing = self.compute_timing(buffer.write_pos, buffer.post_speech_samples, buffer_end)

        segment = SpeechSegment(
            segment_id=self.segment_id_counter,
            samples=np.concatenate([lookback_audio, utterance]),
            timing=timing,
            lookback_samples=len(lookback_audio),
            utterance_samples=buffer.write_pos,
            padding_samples=padding_samples,
        )
        self.segment_id_counter += 1
        return segment

    def dispatch(self,
                 buffer: 'UtteranceBuffer',
                 lookback: List[AnalysisWindow],
                 buffer_end: Optional[float] = None) -> SpeechSegment:
        """Build a segment and enqueue it for transcription without blocking.

        Returns:
            The dispatched SpeechSegment
        """
        segment = self.build_segment(buffer, lookback, buffer_end)

        try:
            self.segment_queue.put_nowait(segment)
        except queue.Full:
            self.undelivered_segments += 1
            logging.warning(
                f"SegmentDispatcher: segment_queue full, segment {segment.segment_id} not transcribed "
                f"(total undelivered: {self.undelivered_segments})"
            )
            self.publisher.publish(EngineEvent(
                type='error',
                message='Transcription queue full, segment not transcribed',
                timing=segment.timing,
                segment_id=segment.segment_id,
            ))
            return segment

        if self.verbose:
            logging.debug(
                f"SegmentDispatcher: dispatched segment {segment.segment_id} "
                f"lookback={segment.lookback_samples} utterance={segment.utterance_samples} "
                f"padding={segment.padding_samples} start={segment.timing.start:.3f} "
                f"duration={segment.timing.duration:.3f}s"
            )
        return segment
