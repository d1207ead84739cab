"""Sound subsystem - framing, activity gating, buffering and dispatch.

AudioSource is not re-exported here: importing sounddevice requires the
PortAudio library, which file and test runs do not need.
"""
from segmenter.sound.FrameSplitter import FrameSplitter
from segmenter.sound.ActivityGate import ActivityGate, VadScoringError
from segmenter.sound.LookbackRing import LookbackRing
from segmenter.sound.UtteranceBuffer import UtteranceBuffer
from segmenter.sound.SegmentDispatcher import SegmentDispatcher
from segmenter.sound.SegmentationEngine import SegmentationEngine, EngineStatesEnum
from segmenter.sound.FileAudioSource import FileAudioSource

__all__ = [
    'FrameSplitter',
    'ActivityGate',
    'VadScoringError',
    'LookbackRing',
    'UtteranceBuffer',
    'SegmentDispatcher',
    'SegmentationEngine',
    'EngineStatesEnum',
    'FileAudioSource'
]
