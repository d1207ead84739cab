# tests/test_transcriber.py
import queue
import threading
import time
from unittest.mock import MagicMock, Mock, patch

import numpy as np
import pytest

from conftest import event_types
from segmenter.asr.OnnxAsrModel import OnnxAsrModel
from segmenter.asr.Transcriber import Transcriber
from segmenter.types import SegmentTiming, SpeechSegment


def make_segment(segment_id=0, start=1.0):
    return SpeechSegment(
        segment_id=segment_id,
        samples=np.full(1600, 0.1, dtype=np.float32),
        timing=SegmentTiming(start=start, end=start + 0.1, duration=0.1),
        lookback_samples=0,
        utterance_samples=1600,
        padding_samples=0,
    )


class TestTranscriber:
    """Segment -> event conversion, error reporting and worker lifecycle."""

    @pytest.fixture
    def model(self):
        return Mock(return_value="hello world")

    def test_publishes_segment_ready(self, model, publisher, events):
        transcriber = Transcriber(queue.Queue(), model, publisher)
        segment = make_segment(segment_id=3, start=12.5)

        text = transcriber.transcribe_segment(segment)

        assert text == "hello world"
        model.assert_called_once_with(segment.samples, segment.timing)
        assert event_types(events) == ['segment_ready']
        assert events[0].text == "hello world"
        assert events[0].timing == segment.timing
        assert events[0].segment_id == 3

    def test_failure_publishes_error_with_timing(self, publisher, events):
        model = Mock(side_effect=RuntimeError("decoder crashed"))
        transcriber = Transcriber(queue.Queue(), model, publisher)
        segment = make_segment(segment_id=5)

        assert transcriber.transcribe_segment(segment) is None

        assert event_types(events) == ['error']
        assert events[0].message == "Transcription failed: decoder crashed"
        assert events[0].timing == segment.timing
        assert events[0].segment_id == 5
        assert transcriber.failed_segments == 1

    def test_failure_does_not_stop_later_segments(self, publisher, events):
        model = Mock(side_effect=[RuntimeError("boom"), "second"])
        segment_queue = queue.Queue()
        transcriber = Transcriber(segment_queue, model, publisher)
        segment_queue.put(make_segment(0))
        segment_queue.put(make_segment(1))

        transcriber.start()
        transcriber.stop()

        assert event_types(events) == ['error', 'segment_ready']
        assert events[1].text == "second"

    def test_failure_count_exact_across_workers(self, publisher):
        model = Mock(side_effect=RuntimeError("boom"))
        segment_queue = queue.Queue()
        for i in range(200):
            segment_queue.put(make_segment(i))
        transcriber = Transcriber(segment_queue, model, publisher, workers=4)

        transcriber.start()
        transcriber.stop(drain=True)

        assert transcriber.failed_segments == 200

    def test_workers_consume_queue(self, model, publisher, events):
        segment_queue = queue.Queue()
        transcriber = Transcriber(segment_queue, model, publisher, workers=2)
        transcriber.start()
        try:
            for i in range(5):
                segment_queue.put(make_segment(i, start=float(i)))

            deadline = time.time() + 2.0
            while len(events) < 5 and time.time() < deadline:
                time.sleep(0.01)
        finally:
            transcriber.stop()

        assert sorted(e.segment_id for e in events) == [0, 1, 2, 3, 4]
        assert len(transcriber.threads) == 0

    def test_start_runs_requested_worker_count(self, model, publisher):
        transcriber = Transcriber(queue.Queue(), model, publisher, workers=3)
        transcriber.start()
        try:
            assert len(transcriber.threads) == 3
            assert all(t.daemon for t in transcriber.threads)
        finally:
            transcriber.stop()

    def test_stop_drains_queue(self, model, publisher, events):
        segment_queue = queue.Queue()
        transcriber = Transcriber(segment_queue, model, publisher)
        transcriber.start()
        transcriber.is_running = False  # workers exit without taking anything
        for thread in transcriber.threads:
            thread.join(timeout=1.0)
        transcriber.is_running = True
        segment_queue.put(make_segment(0))

        transcriber.stop(drain=True)

        assert event_types(events) == ['segment_ready']

    def test_stop_without_drain_leaves_queue(self, model, publisher):
        segment_queue = queue.Queue()
        transcriber = Transcriber(segment_queue, model, publisher)
        transcriber.start()
        transcriber.is_running = False
        for thread in transcriber.threads:
            thread.join(timeout=1.0)
        transcriber.is_running = True
        segment_queue.put(make_segment(0))

        transcriber.stop(drain=False)

        assert segment_queue.qsize() == 1

    def test_stop_is_idempotent(self, model, publisher):
        transcriber = Transcriber(queue.Queue(), model, publisher)
        transcriber.start()
        transcriber.stop()
        transcriber.stop()
        assert not transcriber.is_running

    def test_shutdown_state_stops_workers(self, model, publisher):
        transcriber = Transcriber(queue.Queue(), model, publisher)
        transcriber.start()

        transcriber.on_state_change('running', 'shutdown')

        assert not transcriber.is_running

    def test_rejects_missing_model(self, publisher):
        with pytest.raises(ValueError):
            Transcriber(queue.Queue(), None, publisher)

    def test_rejects_zero_workers(self, model, publisher):
        with pytest.raises(ValueError):
            Transcriber(queue.Queue(), model, publisher, workers=0)


class TestOnnxAsrModel:
    """OnnxAsrModel over a patched onnx_asr loader."""

    @pytest.fixture
    def loaded(self, config):
        asr = MagicMock()
        asr.recognize.return_value = "  some text "
        with patch('onnx_asr.load_model', return_value=asr) as load_model:
            model = OnnxAsrModel(config, model_path='/models/parakeet')
            yield model, asr, load_model

    def test_loads_configured_model(self, loaded, config):
        model, _, load_model = loaded
        load_model.assert_called_once_with(config['transcription']['model_name'], '/models/parakeet')

    def test_recognize_strips_text(self, loaded):
        model, asr, _ = loaded
        samples = np.zeros(1600, dtype=np.float32)

        text = model(samples, SegmentTiming(0.0, 0.1, 0.1))

        assert text == "some text"
        asr.recognize.assert_called_once_with(samples, sample_rate=16000)

    def test_quantization_forwarded(self, config):
        config['transcription']['quantization'] = 'int8'
        with patch('onnx_asr.load_model') as load_model:
            OnnxAsrModel(config, model_path='/m', model_name='whisper-base')

        load_model.assert_called_once_with('whisper-base', '/m', quantization='int8')

    def test_warmup_runs_silence(self, loaded):
        model, asr, _ = loaded
        model.warmup(duration=0.5)

        audio = asr.recognize.call_args.args[0]
        assert len(audio) == 8000
        assert not audio.any()

    def test_recognition_is_serialized(self, loaded):
        model, asr, _ = loaded
        active = []
        overlap = []

        def slow_recognize(samples, sample_rate):
            active.append(1)
            overlap.append(len(active))
            time.sleep(0.01)
            active.pop()
            return "x"

        asr.recognize.side_effect = slow_recognize
        threads = [
            threading.Thread(target=model, args=(np.zeros(10, dtype=np.float32), SegmentTiming(0, 1, 1)))
            for _ in range(4)
        ]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert max(overlap) == 1
