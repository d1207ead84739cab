# tests/test_segment_dispatcher.py
import queue

import numpy as np
import pytest

from conftest import event_types
from segmenter.sound.SegmentDispatcher import SegmentDispatcher
from segmenter.sound.UtteranceBuffer import UtteranceBuffer
from segmenter.types import AnalysisWindow

SR = 16000
PAD = 1024


@pytest.fixture
def dispatcher(segment_queue, publisher):
    return SegmentDispatcher(segment_queue, publisher, SR, PAD, clock=lambda: 1000.0)


@pytest.fixture
def buffer():
    buf = UtteranceBuffer(capacity=SR)
    buf.append(np.full(4096, 0.5, dtype=np.float32))
    buf.mark_speech()
    buf.mark_silence(2048)
    return buf


def lookback_windows(count):
    return [AnalysisWindow(samples=np.full(512, -1.0, dtype=np.float32)) for _ in range(count)]


def test_segment_layout(dispatcher, buffer):
    segment = dispatcher.build_segment(buffer, lookback_windows(2))

    assert segment.lookback_samples == 1024
    assert segment.utterance_samples == 4096
    assert segment.padding_samples == PAD
    assert len(segment.samples) == 1024 + 4096 + PAD
    assert (segment.samples[:1024] == -1.0).all()
    assert (segment.samples[1024:1024 + 4096] == 0.5).all()
    assert not segment.samples[1024 + 4096:].any()


def test_segment_without_lookback(dispatcher, buffer):
    segment = dispatcher.build_segment(buffer, [])
    assert segment.lookback_samples == 0
    assert len(segment.samples) == 4096 + PAD


def test_padding_clamped_when_buffer_full(dispatcher):
    buf = UtteranceBuffer(capacity=2000)
    buf.append(np.ones(2000, dtype=np.float32))

    segment = dispatcher.build_segment(buf, [])

    assert segment.padding_samples == 0
    assert len(segment.samples) == 2000


def test_timing_from_wall_clock(dispatcher, buffer):
    timing = dispatcher.build_segment(buffer, []).timing

    expected_end = 1000.0 - (2048 + PAD) / SR
    assert timing.end == pytest.approx(expected_end)
    assert timing.start == pytest.approx(expected_end - 4096 / SR)
    assert timing.duration == pytest.approx(4096 / SR)


def test_timing_from_buffer_end_overrides_clock(dispatcher, buffer):
    timing = dispatcher.build_segment(buffer, [], buffer_end=50.0).timing
    assert timing.end == pytest.approx(50.0 - (2048 + PAD) / SR)


def test_segment_ids_are_monotonic(dispatcher, buffer):
    ids = [dispatcher.build_segment(buffer, []).segment_id for _ in range(3)]
    assert ids == [0, 1, 2]


def test_segment_does_not_alias_buffer(dispatcher, buffer):
    segment = dispatcher.build_segment(buffer, [])
    buffer.reset()
    assert (segment.samples[:4096] == 0.5).all()


def test_dispatch_enqueues(dispatcher, buffer, segment_queue):
    segment = dispatcher.dispatch(buffer, [])
    assert segment_queue.get_nowait() is segment


def test_full_queue_reports_error_instead_of_dropping(publisher, events, buffer):
    full_queue = queue.Queue(maxsize=1)
    full_queue.put_nowait(object())
    dispatcher = SegmentDispatcher(full_queue, publisher, SR, PAD, clock=lambda: 1000.0)

    segment = dispatcher.dispatch(buffer, [])

    assert dispatcher.undelivered_segments == 1
    assert event_types(events) == ['error']
    assert events[0].timing == segment.timing
    assert events[0].segment_id == segment.segment_id
