# segmenter/sound/SegmentationEngine.py
"""
Tests for this module:
- tests/test_segmentation_engine.py - State machine, discard, overflow, lookback, reset
- tests/test_segmentation_engine_threading.py - Queue-driven processing thread
"""
from __future__ import annotations
import logging
import queue
import threading
from enum import Enum, auto
from typing import Any, Dict, List, Optional, TYPE_CHECKING

import numpy as np

from ..ConfigLoader import SegmentationSettings
from ..types import AnalysisWindow, EngineEvent, SpeechSegment
from .ActivityGate import VadScoringError
from .FrameSplitter import FrameSplitter
from .LookbackRing import LookbackRing
from .UtteranceBuffer import UtteranceBuffer

if TYPE_CHECKING:
    from segmenter.EventPublisher import EventPublisher
    from segmenter.sound.ActivityGate import ActivityGate
    from segmenter.sound.SegmentDispatcher import SegmentDispatcher


class EngineStatesEnum(Enum):
    """Segmentation states.

    State Transitions:
    IDLE → RECORDING: speech window while the buffer is empty
    RECORDING → RECORDING: speech, or a silence run shorter than min_silence
    RECORDING → IDLE: silence run reached min_silence and utterance too short (discard)
    RECORDING → DISPATCHING: silence run reached min_silence, or buffer capacity reached
    DISPATCHING → IDLE: segment handed off, buffer reset (optionally seeded by overflow)
    """
    IDLE = auto()
    RECORDING = auto()
    DISPATCHING = auto()


class SegmentationEngine:
    """Streaming utterance segmenter: frames in, SpeechSegments out.

    Frame → FrameSplitter → ActivityGate → LookbackRing (idle) or
    UtteranceBuffer (recording) → SegmentDispatcher → segment_queue.

    Runs in a dedicated thread reading frame_queue, or can be fed directly
    through process_frame(). Either way every call into the engine holds one
    lock, so windows are classified strictly in order and the recurrent VAD
    state and buffer position are never touched concurrently.

    Error Handling:
    - Malformed frames raise ValueError to the caller (contract violation)
    - VAD failures publish an 'error' event, reset the engine to IDLE and
      processing continues with the next window
    - Buffer overflow is a normal forced dispatch

    Args:
        gate: ActivityGate wrapping the VAD scorer (owned by this engine)
        dispatcher: SegmentDispatcher writing to the transcription queue
        publisher: EventPublisher for engine events
        config: Configuration dictionary
        frame_queue: Queue of {'audio', 'timestamp'} dicts from an audio source
        verbose: Enable verbose logging
    """

    def __init__(self,
                 gate: 'ActivityGate',
                 dispatcher: 'SegmentDispatcher',
                 publisher: 'EventPublisher',
                 config: Dict[str, Any],
                 frame_queue: Optional[queue.Queue] = None,
                 verbose: bool = False):

        self.settings: SegmentationSettings = SegmentationSettings.from_config(config)
        s = self.settings

        self.gate: 'ActivityGate' = gate
        self.dispatcher: 'SegmentDispatcher' = dispatcher
        self.publisher: 'EventPublisher' = publisher
        self.frame_queue: Optional[queue.Queue] = frame_queue

        self.splitter: FrameSplitter = FrameSplitter(s.window_size, s.sample_rate)
        self.lookback: LookbackRing = LookbackRing(s.max_lookback_windows)
        self.buffer: UtteranceBuffer = UtteranceBuffer(s.buffer_capacity)

        self.state: EngineStatesEnum = EngineStatesEnum.IDLE
        self.last_window_end: Optional[float] = None

        self._lock: threading.RLock = threading.RLock()
        self.is_running: bool = False
        self.thread: Optional[threading.Thread] = None
        self.verbose: bool = verbose

    @property
    def is_recording(self) -> bool:
        return self.buffer.is_recording

    # ========================================================================
    # Ingestion
    # ========================================================================

    def process_frame(self, audio: np.ndarray, timestamp: Optional[float] = None) -> List[SpeechSegment]:
        """Split one audio frame into windows and run each through the state machine.

        Frames without a timestamp continue the stream clock: they start where
        the last window ended plus the splitter remainder. The first untimed
        frame after construction or reset() is anchored to the wall clock as
        if it had just finished arriving.

        Args:
            audio: 1-D float32 PCM at the configured sample rate, any length
            timestamp: Capture time of audio[0] in seconds, or None

        Returns:
            Segments dispatched while processing this frame

        Raises:
            ValueError: frame is not 1-D floating point audio
        """
        with self._lock:
            if timestamp is None:
                timestamp = self._continue_stream_clock(len(audio))
            dispatched: List[SpeechSegment] = []
            for window in self.splitter.split(audio, timestamp):
                segment = self._process_window(window)
                if segment is not None:
                    dispatched.append(segment)
            return dispatched

    def _continue_stream_clock(self, frame_samples: int) -> float:
        """Capture time for the first sample of an untimed frame."""
        sr = self.settings.sample_rate
        if self.last_window_end is not None:
            return self.last_window_end + len(self.splitter.pending) / sr
        return self.dispatcher.clock() - frame_samples / sr

    def _process_window(self, window: AnalysisWindow) -> Optional[SpeechSegment]:
        """Advance the state machine by one analysis window.

        Returns:
            The dispatched segment, if this window completed one
        """
        b = self.buffer  # shorthand
        was_recording = b.is_recording

        if window.timestamp is not None:
            self.last_window_end = window.timestamp + len(window) / self.settings.sample_rate

        try:
            is_speech = self.gate.classify(window, was_recording)
        except VadScoringError as e:
            logging.error(f"SegmentationEngine: VAD failed: {e}")
            self.publisher.publish(EngineEvent(type='error', message=f"VAD failed: {e}"))
            self._reset_session(reset_vad=True, notify=was_recording)
            return None

        if not was_recording and not is_speech:
            self.lookback.push(window)
            return None

        overflow = b.append(window.samples)
        if overflow is not None:
            # Buffer full: forced dispatch, overflow seeds the next buffer
            if self.verbose:
                logging.debug(
                    f"SegmentationEngine: buffer capacity reached, carrying {len(overflow)} samples"
                )
            return self._dispatch(overflow)

        if is_speech:
            if not was_recording:
                self.state = EngineStatesEnum.RECORDING
                self.publisher.publish(EngineEvent(type='recording_started', message='Listening...'))
                if self.verbose:
                    logging.debug(
                        f"SegmentationEngine: recording started, prob={self.gate.last_probability:.3f} "
                        f"lookback={len(self.lookback)} windows"
                    )
            b.mark_speech()
            return None

        b.mark_silence(len(window))

        if b.post_speech_samples < self.settings.min_silence_samples:
            return None

        if b.write_pos < self.settings.min_speech_samples:
            if self.verbose:
                logging.debug(
                    f"SegmentationEngine: discarding short utterance ({b.write_pos} samples)"
                )
            self._reset_session(reset_vad=False, notify=True)
            return None

        return self._dispatch()

    # ========================================================================
    # Dispatch and reset
    # ========================================================================

    def _dispatch(self, overflow: Optional[np.ndarray] = None) -> SpeechSegment:
        """Hand the buffered utterance to the dispatcher and return to IDLE.

        Args:
            overflow: Samples past capacity to seed the next buffer
        """
        self.state = EngineStatesEnum.DISPATCHING
        segment = self.dispatcher.dispatch(
            self.buffer,
            self.lookback.snapshot(),
            buffer_end=self.last_window_end
        )
        self.buffer.reset(seed=overflow)
        self.lookback.clear()
        self.state = EngineStatesEnum.IDLE
        self.publisher.publish(EngineEvent(
            type='recording_ended',
            message='Transcribing...',
            timing=segment.timing,
            segment_id=segment.segment_id
        ))
        return segment

    def _reset_session(self, reset_vad: bool, notify: bool) -> None:
        """Drop the in-flight utterance and return to IDLE.

        The splitter remainder is not part of the utterance and survives.
        """
        self.buffer.reset()
        self.lookback.clear()
        if reset_vad:
            self.gate.reset()
        self.state = EngineStatesEnum.IDLE
        if notify:
            self.publisher.publish(EngineEvent(type='recording_ended', message='Discarded'))

    def reset(self) -> None:
        """Discard everything and reinitialize VAD state.

        Afterwards the engine is indistinguishable from a newly constructed one:
        empty buffer, lookback and remainder, zero VAD state.
        """
        with self._lock:
            self._reset_session(reset_vad=True, notify=False)
            self.splitter.reset()
            self.last_window_end = None
            self.publisher.publish(EngineEvent(type='reset_complete'))
            if self.verbose:
                logging.debug("SegmentationEngine: reset()")

    def flush(self) -> Optional[SpeechSegment]:
        """End of stream: dispatch the open utterance if it is long enough.

        Returns:
            The dispatched segment, or None if nothing qualified
        """
        with self._lock:
            segment = None
            if self.buffer.write_pos >= self.settings.min_speech_samples and self.buffer.write_pos > 0:
                segment = self._dispatch()
            else:
                self._reset_session(reset_vad=False, notify=self.buffer.is_recording)
            self.splitter.reset()
            if self.verbose:
                logging.debug("SegmentationEngine: flush()")
            return segment

    # ========================================================================
    # Threading
    # ========================================================================

    def start(self) -> None:
        """Start processing thread"""
        if self.frame_queue is None:
            raise ValueError("SegmentationEngine.start() requires a frame_queue")
        self.is_running = True
        self.thread = threading.Thread(target=self.process, daemon=True)
        self.thread.start()

    def stop(self, flush: bool = True) -> None:
        """Stop processing thread and flush the open utterance.

        Args:
            flush: Dispatch the open utterance (False leaves it for reset())

        Idempotent - safe to call multiple times.
        """
        if not self.is_running:
            return
        self.is_running = False
        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=2.0)
        if flush:
            self.flush()

    def process(self) -> None:
        """Main loop: read frame_queue → process_frame"""
        while self.is_running:
            try:
                frame = self.frame_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            try:
                self.process_frame(frame['audio'], frame.get('timestamp'))
            except ValueError as e:
                logging.error(f"SegmentationEngine: rejected audio frame: {e}")
                self.publisher.publish(EngineEvent(type='error', message=f"Invalid audio frame: {e}"))

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """
        Observes SessionState and reacts to:
        paused: discard the in-flight utterance and reset
        shutdown: stop processing and flush

        Args:
            old_state: Previous state
            new_state: New state
        """
        if new_state == 'paused':
            self.reset()
        elif new_state == 'shutdown':
            self.stop()
