# segmenter/sound/ActivityGate.py
from __future__ import annotations
import logging
import math
from typing import Any, TYPE_CHECKING

if TYPE_CHECKING:
    from segmenter.protocols import VadScorer
    from segmenter.types import AnalysisWindow


class VadScoringError(RuntimeError):
    """VAD scorer raised or returned an unusable probability or state."""


class ActivityGate:
    """Turns VAD probabilities into a speech / non-speech decision with hysteresis.

    The gate owns the recurrent VAD state and threads it through the scorer
    one window at a time. The scorer itself holds no state, so two gates over
    the same scorer are independent sessions.

    Hysteresis:
    - Not recording: speech when probability > speech_threshold
    - Recording: speech while probability >= exit_threshold
    The lower exit threshold keeps a recording open through brief dips.

    Args:
        scorer: VadScorer implementation
        speech_threshold: Probability that opens a recording
        exit_threshold: Probability that keeps a recording open
        verbose: Enable verbose logging
    """

    def __init__(self,
                 scorer: 'VadScorer',
                 speech_threshold: float = 0.3,
                 exit_threshold: float = 0.1,
                 verbose: bool = False):
        self.scorer: 'VadScorer' = scorer
        self.speech_threshold: float = speech_threshold
        self.exit_threshold: float = exit_threshold
        self.verbose: bool = verbose
        self.state: Any = scorer.initial_state()
        self.last_probability: float = 0.0

    def classify(self, window: 'AnalysisWindow', is_recording: bool) -> bool:
        """Score window and decide whether it is speech.

        On failure the stored state is left as it was before the call.

        Args:
            window: Analysis window to score
            is_recording: Whether an utterance is currently open

        Returns:
            True if the window counts as speech

        Raises:
            VadScoringError: scorer failed or returned garbage
        """
        try:
            probability, next_state = self.scorer.score(window.samples, self.state)
            probability = float(probability)
        except Exception as e:
            raise VadScoringError(str(e)) from e

        if math.isnan(probability) or not 0.0 <= probability <= 1.0:
            raise VadScoringError(f"speech probability out of range: {probability}")
        if next_state is None:
            raise VadScoringError("scorer returned no state")

        self.state = next_state
        self.last_probability = probability

        if is_recording:
            is_speech = probability >= self.exit_threshold
        else:
            is_speech = probability > self.speech_threshold

        if self.verbose:
            logging.debug(
                f"ActivityGate: prob={probability:.3f} recording={is_recording} speech={is_speech}"
            )
        return is_speech

    def reset(self) -> None:
        """Reinitialize the recurrent state to its zero value."""
        self.state = self.scorer.initial_state()
        self.last_probability = 0.0
