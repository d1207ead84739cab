"""Protocol definitions for segmentation engine collaborators.

This module defines structural interfaces using Python's Protocol for duck typing.
The engine only depends on these shapes, so tests can substitute plain mocks
and the concrete ONNX models stay swappable.
"""

from typing import Any, Protocol, Tuple
import numpy as np
import numpy.typing as npt

from segmenter.types import EngineEvent, SegmentTiming


class VadScorer(Protocol):
    """Stateless voice activity scoring function with explicit recurrent state.

    The scorer never keeps the recurrent state itself. Callers thread it:
    state' = score(window, state). Given the same window and state the result
    must be identical.
    """

    def initial_state(self) -> Any:
        """Return the zero value of the recurrent state."""
        ...

    def score(self, window: npt.NDArray[np.float32], state: Any) -> Tuple[float, Any]:
        """Score one analysis window.

        Args:
            window: Exactly window_size float32 samples
            state: Recurrent state returned by the previous call

        Returns:
            (speech_probability in [0.0, 1.0], next_state)
        """
        ...


class TranscriptionModel(Protocol):
    """Speech recognition collaborator.

    Thread Safety:
        Called from Transcriber worker threads. With more than one worker,
        implementations must tolerate concurrent calls.
    """

    def __call__(self, samples: npt.NDArray[np.float32], timing: SegmentTiming) -> str:
        ...


class EngineEventSubscriber(Protocol):
    """Receives engine events. Called from engine and worker threads."""

    def __call__(self, event: EngineEvent) -> None:
        ...
