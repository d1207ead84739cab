# segmenter/TranscriptPrinter.py
import sys
import threading
from datetime import datetime
from typing import List, TextIO

from .types import EngineEvent


class TranscriptPrinter:
    """Console subscriber: prints status lines and recognized segments.

    Segments are printed as they complete, which may be out of production
    order with several transcription workers; the segment start time is
    printed so the order can be reconstructed.

    Args:
        stream: Output stream (stdout by default)
        show_status: Also print loading/recording status events
    """

    def __init__(self, stream: TextIO = None, show_status: bool = True):
        self.stream: TextIO = stream or sys.stdout
        self.show_status = show_status
        self.full_transcript: List[str] = []
        self._lock = threading.Lock()

    def __call__(self, event: EngineEvent) -> None:
        if event.type == 'segment_ready':
            if not event.text:
                return
            start = datetime.fromtimestamp(event.timing.start).strftime('%H:%M:%S') if event.timing else '--:--:--'
            with self._lock:
                self.full_transcript.append(event.text)
                print(f"[{start}] {event.text}", file=self.stream, flush=True)
        elif event.type == 'error':
            with self._lock:
                print(f"[ERROR] {event.message}", file=self.stream, flush=True)
        elif self.show_status and event.message:
            with self._lock:
                print(f"[{event.type.upper()}] {event.message}", file=self.stream, flush=True)

    def transcript(self) -> str:
        with self._lock:
            return ' '.join(self.full_transcript)
