# segmenter/pipeline.py
import queue
import signal
import sys
import time
import logging
from pathlib import Path
from typing import Any, List, Optional

import numpy as np
import onnxruntime as rt

from .ConfigLoader import SegmentationSettings, load_config
from .EventPublisher import EventPublisher
from .SessionState import SessionState
from .types import EngineEvent, SegmentTiming
from .asr.ModelManager import ModelManager
from .asr.OnnxAsrModel import OnnxAsrModel
from .asr.Transcriber import Transcriber
from .asr.VoiceActivityDetector import VoiceActivityDetector
from .sound.ActivityGate import ActivityGate
from .sound.FileAudioSource import FileAudioSource
from .sound.SegmentDispatcher import SegmentDispatcher
from .sound.SegmentationEngine import SegmentationEngine


class SegmentationPipeline:
    """Wires audio source, segmentation engine and transcription workers.

    Data flow:
        AudioSource/FileAudioSource -> frame_queue -> SegmentationEngine
        -> segment_queue -> Transcriber -> EventPublisher

    Models are not loaded in the constructor; call load() first (run() does
    it for you). Lifecycle goes through SessionState: the pipeline forwards
    every transition to its components, which stop, pause or reset
    themselves.

    Args:
        config_path: Path to segmenter_config.json (None for defaults)
        models_dir: Directory holding silero_vad/ and the ASR model directory
        input_file: Optional WAV file to use instead of the microphone
        realtime: Pace file input at real-time rate
        device: sounddevice input device for microphone capture
        verbose: Enable verbose logging
    """

    def __init__(self,
                 config_path: Optional[str] = None,
                 models_dir: Optional[Path] = None,
                 input_file: Optional[str] = None,
                 realtime: bool = True,
                 device: Optional[int | str] = None,
                 verbose: bool = False) -> None:
        self.config = load_config(config_path)
        self.settings = SegmentationSettings.from_config(self.config)
        self.verbose = verbose

        self.model_manager = ModelManager(self.config, models_dir)
        self.publisher = EventPublisher(verbose=verbose)
        self.session = SessionState()
        self.session.register_observer(self.on_state_change)

        self.frame_queue: queue.Queue = queue.Queue(maxsize=200)
        self.segment_queue: queue.Queue = queue.Queue(
            maxsize=self.config['transcription']['queue_maxsize']
        )

        if input_file:
            logging.info(f"Using file input: {input_file}")
            self.audio_source = FileAudioSource(
                frame_queue=self.frame_queue,
                config=self.config,
                file_path=input_file,
                realtime=realtime,
                verbose=verbose
            )
        else:
            logging.info("Using microphone input")
            # sounddevice needs PortAudio, only import it for microphone capture
            from .sound.AudioSource import AudioSource
            self.audio_source = AudioSource(
                frame_queue=self.frame_queue,
                config=self.config,
                device=device,
                verbose=verbose
            )

        self.model_name: Optional[str] = None
        self.vad: Optional[VoiceActivityDetector] = None
        self.asr_model: Optional[OnnxAsrModel] = None
        self.engine: Optional[SegmentationEngine] = None
        self.transcriber: Optional[Transcriber] = None

    @property
    def is_loaded(self) -> bool:
        return self.engine is not None

    @property
    def components(self) -> List[Any]:
        """Components observing the session, in shutdown order."""
        return [c for c in (self.audio_source, self.engine, self.transcriber) if c is not None]

    # ========================================================================
    # Model lifecycle
    # ========================================================================

    def load(self, model_name: Optional[str] = None) -> None:
        """Load the VAD and ASR models and build the segmentation components.

        Loading the model that is already loaded only re-announces 'ready'.
        Loading a different one unloads the current models first.

        Args:
            model_name: onnx_asr model name (defaults to transcription.model_name)

        Raises:
            Exception: whatever the model loaders raised, after an 'error' event
        """
        model_name = model_name or self.config['transcription']['model_name']
        if self.is_loaded and model_name == self.model_name:
            self.publisher.publish(EngineEvent(type='ready', message='Ready!'))
            return
        if self.is_loaded:
            self.unload()

        self.publisher.publish(EngineEvent(type='loading', message='Loading VAD model...'))
        self.publisher.publish(EngineEvent(type='info', message=f"ONNX Runtime device: {rt.get_device()}"))

        try:
            vad = VoiceActivityDetector(
                config=self.config,
                model_path=self.model_manager.silero_path,
                verbose=self.verbose
            )
            self.publisher.publish(EngineEvent(type='loading', message=f"Loading {model_name}..."))
            asr_model = OnnxAsrModel(
                config=self.config,
                model_path=self.model_manager.asr_dir,
                model_name=model_name,
                verbose=self.verbose
            )
            if self.config['transcription']['warmup']:
                asr_model.warmup()
        except Exception as e:
            logging.error(f"Failed to load model: {type(e).__name__}: {e}")
            self.publisher.publish(EngineEvent(type='error', message=f"Failed to load model: {e}"))
            raise

        self.vad = vad
        self.asr_model = asr_model
        self.model_name = model_name
        self._build_components()

        if self.session.get_state() == 'running':
            self.engine.start()
            self.transcriber.start()

        self.publisher.publish(EngineEvent(type='ready', message='Ready!'))

    def _build_components(self) -> None:
        s = self.settings
        gate = ActivityGate(
            scorer=self.vad,
            speech_threshold=s.speech_threshold,
            exit_threshold=s.exit_threshold,
            verbose=self.verbose
        )
        dispatcher = SegmentDispatcher(
            segment_queue=self.segment_queue,
            publisher=self.publisher,
            sample_rate=s.sample_rate,
            speech_pad_samples=s.speech_pad_samples,
            verbose=self.verbose
        )
        self.engine = SegmentationEngine(
            gate=gate,
            dispatcher=dispatcher,
            publisher=self.publisher,
            config=self.config,
            frame_queue=self.frame_queue,
            verbose=self.verbose
        )
        self.transcriber = Transcriber(
            segment_queue=self.segment_queue,
            model=self.asr_model,
            publisher=self.publisher,
            workers=self.config['transcription']['workers'],
            verbose=self.verbose
        )

    def unload(self) -> None:
        """Drop models and segmentation state. Queued segments are discarded."""
        if self.engine is not None:
            self.engine.stop(flush=False)
        if self.transcriber is not None:
            self.transcriber.stop(drain=False)

        while True:
            try:
                self.segment_queue.get_nowait()
            except queue.Empty:
                break

        self.engine = None
        self.transcriber = None
        self.vad = None
        self.asr_model = None
        self.model_name = None
        self.publisher.publish(EngineEvent(type='unloaded'))

    # ========================================================================
    # Direct control surface
    # ========================================================================

    def process_audio(self, audio: np.ndarray, timestamp: Optional[float] = None) -> None:
        """Feed one frame straight into the engine, bypassing frame_queue.

        Ignored until load() has completed.
        """
        if not self.is_loaded:
            if self.verbose:
                logging.debug("process_audio() before load(), frame ignored")
            return
        self.engine.process_frame(audio, timestamp)

    def transcribe_direct(self, audio: np.ndarray) -> Optional[str]:
        """Transcribe a complete recording without segmentation.

        Returns:
            Recognized text, or None if no model is loaded or recognition failed
        """
        if not self.is_loaded:
            self.publisher.publish(EngineEvent(
                type='error',
                message='Model not loaded. Please load the model first.'
            ))
            return None

        self.publisher.publish(EngineEvent(type='info', message='Transcribing...'))

        end = time.time()
        duration = len(audio) / self.settings.sample_rate
        timing = SegmentTiming(start=end - duration, end=end, duration=duration)

        try:
            text = self.asr_model(np.asarray(audio, dtype=np.float32), timing)
        except Exception as e:
            logging.error(f"Direct transcription failed: {e}")
            self.publisher.publish(EngineEvent(
                type='error',
                message=f"Transcription failed: {e}",
                timing=timing
            ))
            return None

        self.publisher.publish(EngineEvent(type='segment_ready', text=text, timing=timing))
        return text

    def reset(self) -> None:
        """Discard the in-flight utterance and reinitialize VAD state."""
        if self.engine is not None:
            self.engine.reset()
        else:
            self.publisher.publish(EngineEvent(type='reset_complete'))

    # ========================================================================
    # Session lifecycle
    # ========================================================================

    def on_state_change(self, old_state: str, new_state: str) -> None:
        """Forward session transitions to every component."""
        for component in self.components:
            component.on_state_change(old_state, new_state)

    def start(self) -> None:
        logging.info("Starting segmentation pipeline...")
        if not self.is_loaded:
            self.load()

        self.transcriber.start()
        self.engine.start()
        self.audio_source.start()

        self.session.set_state('running')
        logging.info("Pipeline running. Press Ctrl+C to stop.")

    def pause(self) -> None:
        """Stop capture and discard the in-flight utterance."""
        if not self.session.pause():
            logging.info(f"pause() ignored, session is {self.session.get_state()}")

    def resume(self) -> None:
        if not self.session.resume():
            logging.info(f"resume() ignored, session is {self.session.get_state()}")

    def stop(self) -> None:
        """Stop all components via the 'shutdown' transition.

        The open utterance is flushed and queued segments are transcribed
        before this returns. Idempotent.
        """
        if not self.session.shutdown():
            return

        if self.transcriber is not None and self.transcriber.failed_segments:
            logging.warning(f"{self.transcriber.failed_segments} segment(s) failed transcription")
        logging.info("Pipeline stopped.")

    def run(self) -> None:
        """Run until the input file is exhausted or the user interrupts."""
        self.start()

        def signal_handler(sig: int, frame: Any) -> None:
            self.stop()
            sys.exit(0)

        signal.signal(signal.SIGINT, signal_handler)

        try:
            if isinstance(self.audio_source, FileAudioSource):
                while not self.audio_source.finished.wait(timeout=0.1):
                    pass
                # let the engine drain frame_queue before flushing
                while not self.frame_queue.empty():
                    time.sleep(0.05)
            else:
                while not self.session.wait_for_shutdown(timeout=0.1):
                    pass
        except KeyboardInterrupt:
            pass
        finally:
            self.stop()
