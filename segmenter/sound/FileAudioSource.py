# segmenter/sound/FileAudioSource.py
from __future__ import annotations
import queue
import numpy as np
import time
import logging
import threading
from typing import Dict, Any, List


class FileAudioSource:
    """File-based audio source that replays a WAV file at real-time rate.

    The interface matches AudioSource (start/stop methods) for drop-in
    replacement, so the whole pipeline can be exercised reproducibly
    without a microphone.

    Processing steps:
    1. Load audio file using soundfile
    2. Take the first channel if the file is not mono
    3. Reject files whose sample rate differs from the configured one
    4. Split into chunk_duration frames (the last frame may be shorter)
    5. Feed frames to queue at real-time rate when started

    Args:
        frame_queue: Queue to send audio frames (dict with audio, timestamp)
        config: Configuration dictionary loaded from segmenter_config.json
        file_path: Path to WAV file to load
        realtime: Sleep between frames to mimic capture (False feeds as fast as possible)
        verbose: Enable verbose logging
    """

    def __init__(self,
                 frame_queue: queue.Queue,
                 config: Dict[str, Any],
                 file_path: str,
                 realtime: bool = True,
                 verbose: bool = False):

        self.frame_queue: queue.Queue = frame_queue
        self.file_path: str = file_path
        self.realtime: bool = realtime
        self.verbose: bool = verbose

        self.sample_rate: int = config['audio']['sample_rate']
        chunk_duration = config['audio']['chunk_duration']
        self.chunk_size: int = int(self.sample_rate * chunk_duration)

        self.frames: List[np.ndarray] = self._load_audio()

        self.is_running: bool = False
        self.finished: threading.Event = threading.Event()
        self.thread: threading.Thread | None = None

        if self.verbose:
            logging.info(f"FileAudioSource: loaded {len(self.frames)} frames from {file_path}")

    def _load_audio(self) -> List[np.ndarray]:
        """Load audio file and split it into frames.

        Returns:
            List of float32 frames of chunk_size samples (last may be shorter)

        Raises:
            ValueError: file sample rate differs from the configured sample rate
        """
        import soundfile as sf

        audio, sr = sf.read(self.file_path, dtype='float32')

        if len(audio.shape) > 1:
            audio = audio[:, 0]

        if sr != self.sample_rate:
            raise ValueError(
                f"{self.file_path} is {sr}Hz, expected {self.sample_rate}Hz mono PCM"
            )

        return [audio[i:i + self.chunk_size] for i in range(0, len(audio), self.chunk_size)]

    def start(self) -> None:
        """Start feeding frames to queue from a background thread."""
        self.is_running = True
        self.finished.clear()
        self.thread = threading.Thread(target=self._feed_frames, daemon=True)
        self.thread.start()

        if self.verbose:
            logging.info("FileAudioSource: started feeding frames")

    def _feed_frames(self) -> None:
        """Feed frames to queue, paced at real-time rate when realtime is set.

        Timestamps are derived from the file position so segment timing is
        reproducible between runs.
        """
        start_time = time.time()
        offset = 0

        for frame in self.frames:
            if not self.is_running:
                break

            frame_time = start_time + offset / self.sample_rate
            if self.realtime:
                sleep_time = frame_time - time.time()
                if sleep_time > 0:
                    time.sleep(sleep_time)

            try:
                self.frame_queue.put({'audio': frame, 'timestamp': frame_time}, timeout=1.0)
            except queue.Full:
                logging.warning("frame_queue full, dropping frame")

            offset += len(frame)

        self.is_running = False
        self.finished.set()

        if self.verbose:
            logging.info("FileAudioSource: finished feeding all frames")

    def stop(self) -> None:
        """Stop feeding frames and wait for the background thread."""
        self.is_running = False

        if self.thread and self.thread is not threading.current_thread():
            self.thread.join(timeout=1.0)

        if self.verbose:
            logging.info("FileAudioSource: stopped")

    def on_state_change(self, old_state: str, new_state: str) -> None:
        if new_state in ('paused', 'shutdown'):
            self.stop()
