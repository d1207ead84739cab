# segmenter/ConfigLoader.py
import copy
import json
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict


LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR')

DEFAULT_CONFIG: Dict[str, Any] = {
    'audio': {
        'sample_rate': 16000,
        'chunk_duration': 0.032,
    },
    'vad': {
        'window_size': 512,
        'speech_threshold': 0.3,
        'exit_threshold': 0.1,
    },
    'segmentation': {
        'min_silence_duration_ms': 400,
        'min_speech_duration_ms': 250,
        'speech_pad_ms': 80,
        'max_buffer_duration_s': 30,
    },
    'transcription': {
        'model_name': 'nemo-parakeet-tdt-0.6b-v3',
        'model_repo': 'istupakov/parakeet-tdt-0.6b-v3-onnx',
        'model_dir': 'parakeet',
        'quantization': None,
        'workers': 1,
        'queue_maxsize': 0,
        'warmup': True,
    },
    'logging': {
        'file': 'segmenter.log',
        'level': 'INFO',
        'max_bytes': 10 * 1024 * 1024,
        'backup_count': 5,
        'quiet_loggers': ['huggingface_hub', 'urllib3', 'filelock'],
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override into a copy of base."""
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_config(config_path: str | Path | None = None) -> Dict[str, Any]:
    """Load configuration from JSON file and fill in defaults.

    Args:
        config_path: Path to segmenter_config.json, or None for defaults only

    Returns:
        Validated configuration dictionary

    Raises:
        FileNotFoundError: config_path given but missing
        ValueError: a value is out of range
    """
    if config_path is None:
        config = copy.deepcopy(DEFAULT_CONFIG)
    else:
        path = Path(config_path)
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        with open(path, 'r', encoding='utf-8') as f:
            config = _merge(DEFAULT_CONFIG, json.load(f))

    validate_config(config)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Reject configurations the engine cannot run with.

    Raises:
        ValueError: with a message naming the offending key
    """
    audio = config['audio']
    vad = config['vad']
    seg = config['segmentation']
    transcription = config['transcription']

    if audio['sample_rate'] <= 0:
        raise ValueError(f"audio.sample_rate must be positive, got {audio['sample_rate']}")
    if vad['window_size'] <= 0:
        raise ValueError(f"vad.window_size must be positive, got {vad['window_size']}")
    if not 0.0 <= vad['exit_threshold'] <= vad['speech_threshold'] <= 1.0:
        raise ValueError(
            "vad thresholds must satisfy 0 <= exit_threshold <= speech_threshold <= 1, "
            f"got exit={vad['exit_threshold']} speech={vad['speech_threshold']}"
        )
    for key in ('min_silence_duration_ms', 'min_speech_duration_ms', 'speech_pad_ms'):
        if seg[key] < 0:
            raise ValueError(f"segmentation.{key} must not be negative, got {seg[key]}")
    if seg['max_buffer_duration_s'] <= 0:
        raise ValueError(
            f"segmentation.max_buffer_duration_s must be positive, got {seg['max_buffer_duration_s']}"
        )
    if seg['max_buffer_duration_s'] * audio['sample_rate'] < vad['window_size']:
        raise ValueError("segmentation.max_buffer_duration_s must hold at least one analysis window")
    if transcription['workers'] < 1:
        raise ValueError(f"transcription.workers must be >= 1, got {transcription['workers']}")
    if transcription['queue_maxsize'] < 0:
        raise ValueError(
            f"transcription.queue_maxsize must not be negative, got {transcription['queue_maxsize']}"
        )
    if config['logging']['level'] not in LOG_LEVELS:
        raise ValueError(
            f"logging.level must be one of {', '.join(LOG_LEVELS)}, got {config['logging']['level']}"
        )


@dataclass(frozen=True)
class SegmentationSettings:
    """Sample-count constants derived from the configuration.

    Attributes:
        sample_rate: Samples per second
        window_size: Samples per analysis window
        speech_threshold: Probability that opens a recording
        exit_threshold: Probability that keeps a recording open
        min_silence_samples: Silence run that ends an utterance
        min_speech_samples: Shorter utterances are discarded
        speech_pad_samples: Trailing padding appended on dispatch
        buffer_capacity: Utterance buffer size in samples
        max_lookback_windows: Lookback ring capacity in windows
    """
    sample_rate: int
    window_size: int
    speech_threshold: float
    exit_threshold: float
    min_silence_samples: int
    min_speech_samples: int
    speech_pad_samples: int
    buffer_capacity: int
    max_lookback_windows: int

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> 'SegmentationSettings':
        sample_rate = config['audio']['sample_rate']
        window_size = config['vad']['window_size']
        seg = config['segmentation']
        samples_per_ms = sample_rate / 1000

        speech_pad_samples = int(seg['speech_pad_ms'] * samples_per_ms)

        return cls(
            sample_rate=sample_rate,
            window_size=window_size,
            speech_threshold=config['vad']['speech_threshold'],
            exit_threshold=config['vad']['exit_threshold'],
            min_silence_samples=int(seg['min_silence_duration_ms'] * samples_per_ms),
            min_speech_samples=int(seg['min_speech_duration_ms'] * samples_per_ms),
            speech_pad_samples=speech_pad_samples,
            buffer_capacity=int(round(seg['max_buffer_duration_s'] * sample_rate)),
            max_lookback_windows=math.ceil(speech_pad_samples / window_size),
        )
