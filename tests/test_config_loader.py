# tests/test_config_loader.py
import copy
import json
from pathlib import Path

import pytest

from segmenter.ConfigLoader import DEFAULT_CONFIG, SegmentationSettings, load_config, validate_config

CONFIG_FILE = Path(__file__).parent.parent / "config" / "segmenter_config.json"


def test_defaults_without_file():
    assert load_config() == DEFAULT_CONFIG


def test_defaults_are_not_shared():
    config = load_config()
    config['vad']['speech_threshold'] = 0.9
    assert DEFAULT_CONFIG['vad']['speech_threshold'] == 0.3


def test_shipped_config_matches_defaults():
    assert load_config(CONFIG_FILE) == DEFAULT_CONFIG


def test_partial_file_merged_over_defaults(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({'vad': {'speech_threshold': 0.5}}))

    config = load_config(path)

    assert config['vad']['speech_threshold'] == 0.5
    assert config['vad']['exit_threshold'] == 0.1
    assert config['audio']['sample_rate'] == 16000


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "nope.json")


@pytest.mark.parametrize("section,key,value", [
    ('audio', 'sample_rate', 0),
    ('vad', 'window_size', -512),
    ('vad', 'exit_threshold', 0.5),          # above speech_threshold
    ('vad', 'speech_threshold', 1.5),
    ('segmentation', 'min_silence_duration_ms', -1),
    ('segmentation', 'speech_pad_ms', -80),
    ('segmentation', 'max_buffer_duration_s', 0),
    ('segmentation', 'max_buffer_duration_s', 0.01),  # smaller than one window
    ('transcription', 'workers', 0),
    ('transcription', 'queue_maxsize', -1),
    ('logging', 'level', 'VERBOSE'),
])
def test_invalid_values_rejected(section, key, value):
    config = copy.deepcopy(DEFAULT_CONFIG)
    config[section][key] = value

    with pytest.raises(ValueError):
        validate_config(config)


def test_equal_thresholds_allowed():
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['vad']['exit_threshold'] = 0.3
    validate_config(config)


def test_settings_from_default_config():
    s = SegmentationSettings.from_config(DEFAULT_CONFIG)

    assert s.sample_rate == 16000
    assert s.window_size == 512
    assert s.min_silence_samples == 6400
    assert s.min_speech_samples == 4000
    assert s.speech_pad_samples == 1280
    assert s.buffer_capacity == 480000
    assert s.max_lookback_windows == 3


def test_settings_lookback_rounds_up(config):
    s = SegmentationSettings.from_config(config)
    assert s.speech_pad_samples == 1024
    assert s.max_lookback_windows == 2


def test_zero_padding_means_no_lookback():
    config = copy.deepcopy(DEFAULT_CONFIG)
    config['segmentation']['speech_pad_ms'] = 0
    assert SegmentationSettings.from_config(config).max_lookback_windows == 0
