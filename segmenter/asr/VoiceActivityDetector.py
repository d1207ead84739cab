# segmenter/asr/VoiceActivityDetector.py
from __future__ import annotations
import onnxruntime
import numpy as np
from typing import Any, Dict, Optional, Tuple
from pathlib import Path


class VoiceActivityDetector:
    """Voice Activity Detection scorer using the Silero VAD ONNX model.

    Implements the VadScorer protocol. The recurrent model state is not kept
    here: callers pass it in and get the next one back, so a single loaded
    model can serve any number of independent sessions.

    Args:
        config: Configuration dictionary containing 'vad' and 'audio' sections
        model_path: Path to the Silero VAD ONNX model file
        verbose: Enable detailed logging for debugging (default: False)
    """

    STATE_SHAPE: Tuple[int, int, int] = (2, 1, 128)

    def __init__(self, config: Dict[str, Any], model_path: Path | str, verbose: bool = False):
        self.sample_rate: int = config['audio']['sample_rate']
        self.window_size: int = config['vad']['window_size']
        self.model_path: Path = Path(model_path)
        self.verbose = verbose

        self.model: Optional[onnxruntime.InferenceSession] = None
        self._load_model()

    def _load_model(self) -> None:
        """Load Silero VAD ONNX model from local path.

        Single-threaded session; the model is tiny and runs once per 32ms window.
        """
        model_path = self.model_path

        if not model_path.exists():
            raise FileNotFoundError(
                f"Silero VAD model not found at {model_path}. "
                f"Run 'python main.py --download' to download it."
            )

        try:
            sess_options = onnxruntime.SessionOptions()
            sess_options.graph_optimization_level = onnxruntime.GraphOptimizationLevel.ORT_ENABLE_ALL
            sess_options.intra_op_num_threads = 1
            sess_options.inter_op_num_threads = 1

            self.model = onnxruntime.InferenceSession(
                str(model_path),
                sess_options=sess_options,
                providers=['CPUExecutionProvider']
            )

            # Cache sample rate input to avoid repeated allocations
            self.sr_input = np.array(self.sample_rate, dtype=np.int64)

        except Exception as e:
            raise RuntimeError(f"Failed to load Silero VAD ONNX model: {e}") from e

    def initial_state(self) -> np.ndarray:
        """Zero recurrent state, shape (2, batch_size=1, 128)."""
        return np.zeros(self.STATE_SHAPE, dtype=np.float32)

    def score(self, window: np.ndarray, state: np.ndarray) -> Tuple[float, np.ndarray]:
        """Run one window through the model.

        Args:
            window: Exactly window_size float32 samples
            state: Recurrent state from initial_state() or the previous call

        Returns:
            (speech_probability, next_state)

        Raises:
            ValueError: window has the wrong length or state the wrong shape
        """
        if len(window) != self.window_size:
            raise ValueError(
                f"VAD window must be {self.window_size} samples, got {len(window)}"
            )
        if state.shape != self.STATE_SHAPE:
            raise ValueError(f"VAD state must have shape {self.STATE_SHAPE}, got {state.shape}")

        # Input shape: [batch_size, audio_length]
        audio_input = np.asarray(window, dtype=np.float32).reshape(1, -1)

        ort_outputs = self.model.run(
            None,
            {
                'input': audio_input,
                'state': state,
                'sr': self.sr_input
            }
        )

        speech_prob = float(ort_outputs[0][0][0])  # Shape: [1, 1]
        return speech_prob, ort_outputs[1]
