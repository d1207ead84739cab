# segmenter/asr/OnnxAsrModel.py
from __future__ import annotations
import logging
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, TYPE_CHECKING

import numpy as np
import onnx_asr

if TYPE_CHECKING:
    from segmenter.types import SegmentTiming


class OnnxAsrModel:
    """TranscriptionModel backed by an onnx_asr speech recognition model.

    ONNX Runtime sessions accept concurrent run() calls, but onnx_asr's
    preprocessing is not documented as thread-safe, so recognition is
    serialized with a lock. Extra Transcriber workers then only overlap
    queueing, not inference.

    Args:
        config: Configuration dictionary with a 'transcription' section
        model_path: Local model directory (see ModelManager.asr_dir)
        model_name: onnx_asr model name (overrides transcription.model_name)
        verbose: Enable verbose logging
    """

    def __init__(self,
                 config: Dict[str, Any],
                 model_path: Path | str,
                 model_name: Optional[str] = None,
                 verbose: bool = False):
        transcription = config['transcription']
        self.model_name: str = model_name or transcription['model_name']
        self.model_path: str = str(model_path)
        self.sample_rate: int = config['audio']['sample_rate']
        self.verbose: bool = verbose
        self._lock = threading.Lock()

        kwargs = {}
        if transcription.get('quantization'):
            kwargs['quantization'] = transcription['quantization']

        self.model = onnx_asr.load_model(self.model_name, self.model_path, **kwargs)
        logging.info(f"ASR model loaded: {self.model_name} from {self.model_path}")

    def __call__(self, samples: np.ndarray, timing: 'SegmentTiming') -> str:
        """Recognize one dispatched segment.

        Args:
            samples: float32 audio at the configured sample rate
            timing: Segment timing (only used for logging)

        Returns:
            Recognized text, stripped
        """
        start = time.perf_counter()
        with self._lock:
            text = self.model.recognize(samples, sample_rate=self.sample_rate)
        if self.verbose:
            elapsed = (time.perf_counter() - start) * 1000
            logging.debug(
                f"OnnxAsrModel: {len(samples) / self.sample_rate:.2f}s audio "
                f"(segment start {timing.start:.3f}) recognized in {elapsed:.0f}ms: '{text}'"
            )
        return text.strip()

    def warmup(self, duration: float = 1.0) -> None:
        """Run one inference on silence so the first real segment is not slowed
        down by lazy session initialization.
        """
        dummy_audio = np.zeros(int(self.sample_rate * duration), dtype=np.float32)
        start = time.perf_counter()
        with self._lock:
            self.model.recognize(dummy_audio, sample_rate=self.sample_rate)
        elapsed = (time.perf_counter() - start) * 1000
        logging.info(f"ASR warm-up finished in {elapsed:.0f}ms")
