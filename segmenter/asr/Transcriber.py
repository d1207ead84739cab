# segmenter/asr/Transcriber.py
from __future__ import annotations
import queue
import threading
import logging
from typing import List, Optional, TYPE_CHECKING

from ..types import EngineEvent, SpeechSegment

if TYPE_CHECKING:
    from segmenter.EventPublisher import EventPublisher
    from segmenter.protocols import TranscriptionModel


class Transcriber:
    """Consumes dispatched SpeechSegments and publishes recognized text.

    Single Responsibility: SpeechSegment -> 'segment_ready' / 'error' event.
    Segmentation has already finished by the time a segment gets here, so a
    failure only produces an error event; it never touches engine state.

    Runs `workers` daemon threads on the same segment_queue. Segments are
    taken in production order but may complete out of order; events carry
    timing and segment_id for correlation. No retries.

    Args:
        segment_queue: Queue of SpeechSegment from SegmentDispatcher
        model: TranscriptionModel collaborator
        publisher: EventPublisher for results and errors
        workers: Number of worker threads
        verbose: Enable verbose logging
    """

    def __init__(self,
                 segment_queue: queue.Queue,
                 model: 'TranscriptionModel',
                 publisher: 'EventPublisher',
                 workers: int = 1,
                 verbose: bool = False) -> None:
        if model is None:
            raise ValueError("Transcriber requires model")
        if workers < 1:
            raise ValueError(f"Transcriber requires at least one worker, got {workers}")
        self.segment_queue: queue.Queue = segment_queue
        self.model: 'TranscriptionModel' = model
        self.publisher: 'EventPublisher' = publisher
        self.workers: int = workers
        self.is_running: bool = False
        self.threads: List[threading.Thread] = []
        self.verbose: bool = verbose
        self.failed_segments: int = 0
        self._failed_lock: threading.Lock = threading.Lock()

    def transcribe_segment(self, segment: SpeechSegment) -> Optional[str]:
        """Transcribe one segment and publish the outcome.

        Returns:
            Recognized text, or None if the model failed
        """
        try:
            text = self.model(segment.samples, segment.timing)
        except Exception as e:
            with self._failed_lock:
                self.failed_segments += 1
            logging.error(f"Transcriber: segment {segment.segment_id} failed: {e}")
            self.publisher.publish(EngineEvent(
                type='error',
                message=f"Transcription failed: {e}",
                timing=segment.timing,
                segment_id=segment.segment_id
            ))
            return None

        self.publisher.publish(EngineEvent(
            type='segment_ready',
            text=text,
            timing=segment.timing,
            segment_id=segment.segment_id
        ))
        if self.verbose:
            logging.debug(f"Transcriber: segment {segment.segment_id}: '{text}'")
        return text

    def process(self) -> None:
        """Take segments from the queue until stop() is called."""
        while self.is_running:
            try:
                segment: SpeechSegment = self.segment_queue.get(timeout=0.1)
            except queue.Empty:
                continue
            self.transcribe_segment(segment)

    def start(self) -> None:
        """Start the worker threads."""
        self.is_running = True
        self.threads = [
            threading.Thread(target=self.process, daemon=True, name=f"Transcriber-{i}")
            for i in range(self.workers)
        ]
        for thread in self.threads:
            thread.start()

    def stop(self, drain: bool = True) -> None:
        """Stop the worker threads.

        Args:
            drain: Transcribe segments still queued before returning

        This method is idempotent - safe to call multiple times.
        """
        if not self.is_running:
            return

        self.is_running = False
        for thread in self.threads:
            if thread is not threading.current_thread():
                thread.join(timeout=2.0)
        self.threads = []

        if drain:
            while True:
                try:
                    segment = self.segment_queue.get_nowait()
                except queue.Empty:
                    break
                self.transcribe_segment(segment)

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """
        Observes SessionState:
        - * -> shutdown: stop workers after draining queued segments
        """
        if new_state == 'shutdown':
            self.stop()
