# segmenter/sound/AudioSource.py
from __future__ import annotations
import sounddevice as sd
import queue
import numpy as np
import time
import logging
from typing import Dict, Any, Optional


class AudioSource:
    """Captures audio from microphone and emits raw frames to queue.

    AudioSource uses sounddevice to capture real-time audio from the microphone
    and immediately puts raw frames to frame_queue. No processing is done
    in the callback to prevent blocking and audio dropouts; splitting, VAD
    and buffering all happen on the SegmentationEngine thread.

    Frames are dicts {'audio': float32 mono array, 'timestamp': capture time
    of the first sample}.

    Args:
        frame_queue: Queue to send raw audio frames
        config: Configuration dictionary loaded from segmenter_config.json
        device: sounddevice input device index or name (None for default)
        verbose: Enable verbose logging
    """

    def __init__(self,
                 frame_queue: queue.Queue,
                 config: Dict[str, Any],
                 device: Optional[int | str] = None,
                 verbose: bool = False):

        self.frame_queue: queue.Queue = frame_queue
        self.verbose: bool = verbose
        self.device = device

        self.sample_rate: int = config['audio']['sample_rate']
        chunk_duration = config['audio']['chunk_duration']

        self.chunk_size: int = int(self.sample_rate * chunk_duration)
        self.is_running: bool = False
        self.stream: sd.InputStream | None = None
        self.dropped_frames: int = 0

    def audio_callback(self, indata: np.ndarray, frames: int, time_info: Any, status: Any) -> None:
        """Callback from sounddevice that forwards incoming audio data.

        Takes the first channel if the device delivers more than one.

        Args:
            indata: Input audio data as numpy array (shape: [frames, channels])
            frames: Number of audio frames
            time_info: Timing information from sounddevice
            status: Status information from sounddevice
        """
        if status:
            logging.error(f"Audio error: {status}")

        audio_float: np.ndarray = indata[:, 0].astype(np.float32)
        capture_time = time.time() - frames / self.sample_rate

        frame = {
            'audio': audio_float,
            'timestamp': capture_time
        }

        try:
            self.frame_queue.put_nowait(frame)
        except queue.Full:
            self.dropped_frames += 1
            logging.warning(f"frame_queue full, dropping audio frame (total drops: {self.dropped_frames})")

    def start(self) -> None:
        """Start capturing audio from the microphone."""
        self.is_running = True
        self.stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype='float32',
            device=self.device,
            callback=self.audio_callback,
            blocksize=self.chunk_size
        )
        self.stream.start()
        if self.verbose:
            logging.info(f"AudioSource: capturing at {self.sample_rate}Hz, blocksize={self.chunk_size}")

    def stop(self) -> None:
        """Stop and close the sounddevice InputStream."""
        self.is_running = False
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """Handle session state changes.

        - running -> paused: stop and close stream (release microphone)
        - paused -> running: restart stream
        - * -> shutdown: stop stream

        Args:
            old_state: Previous state
            new_state: New state
        """
        if new_state == 'paused':
            self.stop()
        elif old_state == 'paused' and new_state == 'running':
            self.start()
        elif new_state == 'shutdown':
            self.stop()
