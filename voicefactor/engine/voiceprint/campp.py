"""Voiceprint extraction using the CAM++ speaker embedding model."""

import logging
import threading

import numpy as np
import sherpa_onnx

from voicefactor.audio.sample import AudioSample
from voicefactor.domain.models import Embedding
from voicefactor.engine.exceptions import ModelNotLoadedError, SpeakerEmbeddingError
from voicefactor.engine.settings import settings
from voicefactor.engine.signal import ensure_speech, normalize_loudness, prepare_waveform
from voicefactor.engine.voiceprint.similarity import l2_normalize

logger = logging.getLogger(__name__)

# Embedding dimension for CAM++ model
EMBEDDING_DIM = 512


class CAMPPVoiceprint:
    """Voiceprint extractor using CAM++ through sherpa-onnx.

    Implements FeatureExtractorProtocol from voicefactor.domain.protocols.
    """

    VERSION = "campp-voxceleb-v1"

    def __init__(self, model_path: str | None = None) -> None:
        """Initialize voiceprint extractor.

        Args:
            model_path: Path to CAM++ model. Defaults to settings path.
        """
        self._extractor: sherpa_onnx.SpeakerEmbeddingExtractor | None = None
        self._model_path = model_path or str(settings.speaker_model_path)
        # sherpa-onnx streams are not shared between threads
        self._lock = threading.Lock()

    def _ensure_loaded(self) -> sherpa_onnx.SpeakerEmbeddingExtractor:
        """Ensure voiceprint model is loaded."""
        if self._extractor is None:
            self.load()
        if self._extractor is None:
            raise ModelNotLoadedError("Voiceprint model not loaded")
        return self._extractor

    def load(self) -> None:
        """Load the voiceprint model."""
        try:
            config = sherpa_onnx.SpeakerEmbeddingExtractorConfig(
                model=self._model_path,
                num_threads=settings.speaker_num_threads,
                debug=False,
            )
            self._extractor = sherpa_onnx.SpeakerEmbeddingExtractor(config)
            logger.info(f"Loaded CAM++ model from {self._model_path}")
        except Exception as e:
            raise SpeakerEmbeddingError(f"Failed to load voiceprint model: {e}") from e

    @property
    def version(self) -> str:
        """Extractor version tag."""
        return self.VERSION

    @property
    def dim(self) -> int:
        """Get the dimension of voiceprint embeddings."""
        return EMBEDDING_DIM

    def extract(self, sample: AudioSample) -> Embedding:
        """Extract voiceprint from an audio sample.

        Returns:
            L2-normalized 512-dimensional embedding.

        Raises:
            SampleFormatError: If the sample format is unsupported.
            NoSpeechDetectedError: If the sample has no continuous speech energy.
            SpeakerEmbeddingError: If extraction fails.
        """
        audio = prepare_waveform(sample)
        ensure_speech(audio, settings.target_sample_rate)
        audio = normalize_loudness(audio)

        extractor = self._ensure_loaded()

        try:
            with self._lock:
                stream = extractor.create_stream()
                stream.accept_waveform(settings.target_sample_rate, audio)
                stream.input_finished()

                if not extractor.is_ready(stream):
                    raise SpeakerEmbeddingError(
                        "Voiceprint extraction not ready - audio may be too short"
                    )

                vector = np.array(extractor.compute(stream), dtype=np.float32)
        except SpeakerEmbeddingError:
            raise
        except Exception as e:
            raise SpeakerEmbeddingError(f"Voiceprint extraction failed: {e}") from e

        if vector.shape != (EMBEDDING_DIM,):
            raise SpeakerEmbeddingError(
                f"Unexpected embedding dimension: {vector.shape}, expected {EMBEDDING_DIM}"
            )
        return Embedding(vector=l2_normalize(vector), extractor_version=self.version)
