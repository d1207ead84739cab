"""Streaming speech segmentation: audio frames in, transcribed utterances out."""
from .ConfigLoader import load_config, SegmentationSettings
from .EventPublisher import EventPublisher
from .SessionState import SessionState
from .types import AnalysisWindow, EngineEvent, SegmentTiming, SpeechSegment

__all__ = [
    'load_config',
    'SegmentationSettings',
    'EventPublisher',
    'SessionState',
    'AnalysisWindow',
    'EngineEvent',
    'SegmentTiming',
    'SpeechSegment'
]
