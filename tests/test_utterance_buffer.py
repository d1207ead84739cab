# tests/test_utterance_buffer.py
import numpy as np
import pytest

from segmenter.sound.UtteranceBuffer import UtteranceBuffer


@pytest.fixture
def buffer():
    return UtteranceBuffer(capacity=10)


def test_append_within_capacity(buffer):
    assert buffer.append(np.ones(4, dtype=np.float32)) is None
    assert buffer.write_pos == 4
    assert buffer.remaining == 6


def test_append_reaching_capacity_returns_empty_overflow(buffer):
    overflow = buffer.append(np.ones(10, dtype=np.float32))

    assert overflow is not None
    assert len(overflow) == 0
    assert buffer.write_pos == buffer.capacity


def test_append_past_capacity_splits_samples(buffer):
    buffer.append(np.arange(8, dtype=np.float32))
    overflow = buffer.append(np.arange(8, 12, dtype=np.float32))

    np.testing.assert_array_equal(buffer.data, np.arange(10))
    np.testing.assert_array_equal(overflow, [10, 11])


def test_overflow_is_a_copy(buffer):
    samples = np.arange(12, dtype=np.float32)
    overflow = buffer.append(samples)
    samples[10] = -1
    assert overflow[0] == 10


def test_contents_includes_zero_padding(buffer):
    buffer.append(np.ones(4, dtype=np.float32))
    contents = buffer.contents(padding=3)

    np.testing.assert_array_equal(contents, [1, 1, 1, 1, 0, 0, 0])


def test_contents_padding_clamped_at_capacity(buffer):
    buffer.append(np.ones(8, dtype=np.float32))
    assert len(buffer.contents(padding=5)) == 10


def test_speech_and_silence_bookkeeping(buffer):
    buffer.mark_speech()
    buffer.mark_silence(3)
    buffer.mark_silence(3)
    assert buffer.is_recording
    assert buffer.post_speech_samples == 6

    buffer.mark_speech()
    assert buffer.post_speech_samples == 0


def test_reset_zeroes_everything(buffer):
    buffer.append(np.ones(6, dtype=np.float32))
    buffer.mark_speech()
    buffer.mark_silence(2)

    buffer.reset()

    assert buffer.write_pos == 0
    assert not buffer.is_recording
    assert buffer.post_speech_samples == 0
    assert not buffer.data.any()


def test_reset_with_seed_starts_next_buffer(buffer):
    buffer.append(np.ones(10, dtype=np.float32))
    buffer.reset(seed=np.array([7, 8, 9], dtype=np.float32))

    assert buffer.write_pos == 3
    assert not buffer.is_recording
    np.testing.assert_array_equal(buffer.data, [7, 8, 9, 0, 0, 0, 0, 0, 0, 0])


def test_reset_with_empty_seed(buffer):
    buffer.append(np.ones(10, dtype=np.float32))
    buffer.reset(seed=np.zeros(0, dtype=np.float32))
    assert buffer.write_pos == 0


def test_buffer_is_never_reallocated(buffer):
    data = buffer.data
    buffer.append(np.ones(12, dtype=np.float32))
    buffer.reset(seed=np.ones(2, dtype=np.float32))
    assert buffer.data is data


def test_invalid_capacity():
    with pytest.raises(ValueError):
        UtteranceBuffer(capacity=0)
