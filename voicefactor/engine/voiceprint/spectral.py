"""Spectral voiceprint: pooled log mel band energies.

A model-free extractor satisfying the feature extractor contract. It
captures the long-term spectral envelope of the speaker and is used as the
default until a trained embedding model is configured.
"""

import numpy as np

from voicefactor.audio.sample import AudioSample
from voicefactor.domain.models import Embedding
from voicefactor.engine.settings import settings
from voicefactor.engine.signal import (
    ensure_speech,
    frame_signal,
    normalize_loudness,
    prepare_waveform,
)
from voicefactor.engine.voiceprint.similarity import l2_normalize

_EPS = 1e-10


def hz_to_mel(hz: np.ndarray | float) -> np.ndarray:
    """Convert Hz to mel scale."""
    return 2595.0 * np.log10(1.0 + np.asarray(hz) / 700.0)


def mel_to_hz(mel: np.ndarray | float) -> np.ndarray:
    """Convert mel scale to Hz."""
    return 700.0 * (10.0 ** (np.asarray(mel) / 2595.0) - 1.0)


def mel_filterbank(
    num_bands: int,
    fft_size: int,
    sample_rate: int,
    low_freq: float,
    high_freq: float,
) -> np.ndarray:
    """Triangular mel filters, shape ``(num_bands, fft_size // 2 + 1)``."""
    high_freq = min(high_freq, sample_rate / 2)
    mel_points = np.linspace(hz_to_mel(low_freq), hz_to_mel(high_freq), num_bands + 2)
    hz_points = mel_to_hz(mel_points)
    freqs = np.fft.rfftfreq(fft_size, d=1.0 / sample_rate)

    filterbank = np.zeros((num_bands, freqs.size))
    for i in range(num_bands):
        left, center, right = hz_points[i : i + 3]
        rising = (freqs - left) / (center - left)
        falling = (right - freqs) / (right - center)
        filterbank[i] = np.maximum(0.0, np.minimum(rising, falling))
    return filterbank


class SpectralVoiceprint:
    """Voiceprint from the average log mel spectrum of the loud frames.

    Implements FeatureExtractorProtocol from voicefactor.domain.protocols.
    """

    VERSION = "spectral-mel-v1"

    def __init__(self, num_bands: int | None = None) -> None:
        """Initialize the extractor.

        Args:
            num_bands: Number of mel bands (= embedding dimension).
                Defaults to settings.num_mel_bands.
        """
        self._num_bands = num_bands or settings.num_mel_bands
        self._sample_rate = settings.target_sample_rate
        self._fft_size = settings.fft_size
        frame_len = int(round(settings.frame_length * self._sample_rate))
        if frame_len > self._fft_size:
            raise ValueError(
                f"Frame length {frame_len} exceeds FFT size {self._fft_size}"
            )
        self._window = np.hanning(frame_len)
        self._filterbank = mel_filterbank(
            self._num_bands,
            self._fft_size,
            self._sample_rate,
            settings.mel_low_freq,
            settings.mel_high_freq,
        )

    @property
    def version(self) -> str:
        """Extractor version; includes the band count since it fixes the dimension."""
        return f"{self.VERSION}/{self._num_bands}"

    @property
    def dim(self) -> int:
        """Embedding dimension."""
        return self._num_bands

    def extract(self, sample: AudioSample) -> Embedding:
        """Extract a gain-invariant spectral embedding.

        Raises:
            SampleFormatError: If the sample format is unsupported.
            NoSpeechDetectedError: If the sample has no continuous speech energy.
        """
        audio = prepare_waveform(sample)
        ensure_speech(audio, self._sample_rate)
        audio = normalize_loudness(audio)

        frames = frame_signal(audio.astype(np.float64), self._sample_rate)
        spectrum = np.abs(np.fft.rfft(frames * self._window, n=self._fft_size)) ** 2
        log_bands = np.log10(spectrum @ self._filterbank.T + _EPS)

        # Pool only frames close to the loudest one so pauses do not dilute the profile
        frame_level = 10.0 * np.log10(spectrum.sum(axis=1) + _EPS)
        loud = frame_level >= frame_level.max() - settings.pooling_gate_db
        profile = log_bands[loud].mean(axis=0)

        # Remove overall level, keep spectral shape
        profile = profile - profile.mean()
        return Embedding(vector=l2_normalize(profile), extractor_version=self.version)
