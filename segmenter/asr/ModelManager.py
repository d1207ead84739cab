"""
ModelManager handles model download and validation for the segmenter.
"""
import logging
import shutil
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from huggingface_hub import snapshot_download, hf_hub_download


MODEL_DIR = Path("./models")
SILERO_REPO = "onnx-community/silero-vad"
SILERO_FILE = "onnx/model.onnx"


class ModelManager:
    """
    Manages model downloads and validation.

    Two models are required: 'silero_vad' (VAD scorer) and 'asr' (the
    onnx_asr recognition model named in the transcription config).

    Args:
        config: Configuration dictionary (vad/transcription sections)
        model_dir: Root models directory (defaults to ./models)
    """

    def __init__(self, config: Dict[str, Any], model_dir: Optional[Path] = None):
        self.config = config
        self.model_dir: Path = model_dir if model_dir is not None else MODEL_DIR

    @property
    def silero_path(self) -> Path:
        return self.model_dir / "silero_vad" / "silero_vad.onnx"

    @property
    def asr_dir(self) -> Path:
        return self.model_dir / self.config['transcription']['model_dir']

    def get_missing_models(self) -> List[str]:
        """
        Returns:
            List of missing model names: ['silero_vad', 'asr'] or a subset
        """
        missing = []
        if not self.validate_model('silero_vad'):
            missing.append('silero_vad')
        if not self.validate_model('asr'):
            missing.append('asr')
        return missing

    def validate_model(self, model_name: str) -> bool:
        """
        Validates that a model exists and is not empty.

        Args:
            model_name: 'silero_vad' or 'asr'

        Returns:
            True if model files exist and are non-empty
        """
        if model_name == 'silero_vad':
            return self.silero_path.exists() and self.silero_path.stat().st_size > 0
        if model_name == 'asr':
            if not self.asr_dir.is_dir():
                return False
            onnx_files = list(self.asr_dir.glob("*.onnx"))
            return bool(onnx_files) and all(f.stat().st_size > 0 for f in onnx_files)
        return False

    def download_models(self, progress_callback: Optional[Callable[[str, float, str], None]] = None) -> bool:
        """
        Downloads missing models with optional progress tracking.

        Args:
            progress_callback: Callback function with signature:
                def callback(model_name: str, progress: float, status: str):
                    # progress: 0.0 to 1.0
                    # status: 'downloading' | 'complete' | 'error'

        Returns:
            True if all downloads succeeded, False otherwise
        """
        model_name = 'unknown'
        try:
            for model_name in self.get_missing_models():
                if progress_callback:
                    progress_callback(model_name, 0.0, 'downloading')

                if model_name == 'silero_vad':
                    self._download_silero()
                elif model_name == 'asr':
                    self._download_asr()

                if progress_callback:
                    progress_callback(model_name, 1.0, 'complete')

            return True

        except Exception as e:
            logging.error(f"Model download error: {type(e).__name__}: {e}", exc_info=True)

            if progress_callback:
                progress_callback(model_name, 0.0, 'error')

            self._cleanup_partial_files()
            return False

    def _download_asr(self) -> None:
        """Downloads the ASR model repository into models/<transcription.model_dir>."""
        self.asr_dir.mkdir(parents=True, exist_ok=True)

        snapshot_download(
            repo_id=self.config['transcription']['model_repo'],
            local_dir=str(self.asr_dir),
            ignore_patterns=["README.md"]
        )

    def _download_silero(self) -> None:
        """
        Downloads Silero VAD model from HuggingFace.

        HuggingFace downloads to onnx/model.onnx, but the segmenter expects
        silero_vad.onnx at the root. The file is copied and the onnx directory
        removed.
        """
        silero_dir = self.silero_path.parent
        silero_dir.mkdir(parents=True, exist_ok=True)

        hf_hub_download(
            repo_id=SILERO_REPO,
            filename=SILERO_FILE,
            local_dir=str(silero_dir)
        )

        source_path = silero_dir / SILERO_FILE
        if source_path.exists():
            shutil.copy2(source_path, self.silero_path)
            onnx_dir = silero_dir / "onnx"
            if onnx_dir.exists():
                shutil.rmtree(onnx_dir)

    def _cleanup_partial_files(self) -> None:
        """Removes *.partial files left behind by an interrupted download."""
        for subdir in (self.silero_path.parent, self.asr_dir):
            if subdir.exists():
                for partial_file in subdir.glob("*.partial"):
                    try:
                        partial_file.unlink()
                    except OSError as e:
                        logging.warning(f"Could not remove {partial_file}: {e}")
