# tests/conftest.py
import copy
import queue
from pathlib import Path
from typing import List
from unittest.mock import Mock

import numpy as np
import pytest

from segmenter.ConfigLoader import DEFAULT_CONFIG
from segmenter.EventPublisher import EventPublisher
from segmenter.sound.ActivityGate import ActivityGate
from segmenter.sound.SegmentDispatcher import SegmentDispatcher
from segmenter.sound.SegmentationEngine import SegmentationEngine

MODELS_DIR = Path(__file__).parent.parent / "models"

WINDOW = 512
SPEECH = 0.9
SILENCE = 0.0


@pytest.fixture
def config():
    """Small-scale configuration for engine tests.

    Derived sample counts at 16 kHz:
        min_silence_samples = 1600 (4 windows of silence end an utterance)
        min_speech_samples  = 3200
        speech_pad_samples  = 1024 (lookback ring holds 2 windows)
        buffer_capacity     = 32000
    """
    cfg = copy.deepcopy(DEFAULT_CONFIG)
    cfg['segmentation'] = {
        'min_silence_duration_ms': 100,
        'min_speech_duration_ms': 200,
        'speech_pad_ms': 64,
        'max_buffer_duration_s': 2,
    }
    cfg['transcription']['warmup'] = False
    return cfg


def make_scorer(probabilities: List[float]) -> Mock:
    """Mock VadScorer returning scripted probabilities in order.

    The state is an int that counts scored windows, so tests can check that
    state is threaded through and reset.
    """
    probs = iter(probabilities)
    scorer = Mock()
    scorer.initial_state.return_value = 0
    scorer.score.side_effect = lambda window, state: (next(probs), state + 1)
    return scorer


def make_window_audio(count: int = 1, value: float = 0.1) -> np.ndarray:
    """count windows of constant-valued float32 audio."""
    return np.full(WINDOW * count, value, dtype=np.float32)


@pytest.fixture
def publisher():
    return EventPublisher(verbose=False)


@pytest.fixture
def events(publisher):
    """Every EngineEvent published during the test, in order."""
    recorded = []
    publisher.subscribe(recorded.append)
    return recorded


@pytest.fixture
def segment_queue():
    return queue.Queue()


@pytest.fixture
def make_engine(config, publisher, segment_queue):
    """Factory building a SegmentationEngine over a scripted scorer.

    Usage: engine = make_engine([0.9, 0.9, 0.0], clock=lambda: 100.0)
    A ready-made scorer Mock can be passed instead of probabilities.
    """
    def _make(probabilities=None, cfg=None, clock=None, frame_queue=None, scorer=None):
        cfg = cfg or config
        scorer = scorer or make_scorer(probabilities)
        gate = ActivityGate(
            scorer,
            speech_threshold=cfg['vad']['speech_threshold'],
            exit_threshold=cfg['vad']['exit_threshold']
        )
        sample_rate = cfg['audio']['sample_rate']
        pad = int(cfg['segmentation']['speech_pad_ms'] * sample_rate / 1000)
        dispatcher_kwargs = {'clock': clock} if clock is not None else {}
        dispatcher = SegmentDispatcher(
            segment_queue, publisher, sample_rate, pad, **dispatcher_kwargs
        )
        return SegmentationEngine(
            gate=gate,
            dispatcher=dispatcher,
            publisher=publisher,
            config=cfg,
            frame_queue=frame_queue
        )
    return _make


def event_types(events) -> List[str]:
    return [e.type for e in events]
