"""ASR subsystem - VAD scoring, speech recognition and model handling."""
from segmenter.asr.VoiceActivityDetector import VoiceActivityDetector
from segmenter.asr.OnnxAsrModel import OnnxAsrModel
from segmenter.asr.Transcriber import Transcriber
from segmenter.asr.ModelManager import ModelManager

__all__ = [
    'VoiceActivityDetector',
    'OnnxAsrModel',
    'Transcriber',
    'ModelManager'
]
