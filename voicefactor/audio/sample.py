"""Decoded audio recording with its format metadata."""

from dataclasses import dataclass

import numpy as np

from voicefactor.domain.exceptions import InvalidAudioError


@dataclass(frozen=True, eq=False)
class AudioSample:
    """One finite, decoded recording.

    ``waveform`` is float32 in [-1, 1], shaped ``(n,)`` for mono or
    ``(channels, n)`` for multi-channel audio. Samples are never persisted;
    only embeddings derived from them are.
    """

    waveform: np.ndarray
    sample_rate: int
    channels: int = 1

    def __post_init__(self) -> None:
        waveform = np.asarray(self.waveform, dtype=np.float32)
        if waveform.ndim == 2 and waveform.shape[0] != self.channels:
            raise InvalidAudioError(
                f"Waveform has {waveform.shape[0]} channels, expected {self.channels}"
            )
        if waveform.ndim not in (1, 2):
            raise InvalidAudioError(f"Unexpected waveform shape: {waveform.shape}")
        if self.sample_rate <= 0:
            raise InvalidAudioError(f"Invalid sample rate: {self.sample_rate}")
        object.__setattr__(self, "waveform", waveform)

    @property
    def num_frames(self) -> int:
        """Number of samples per channel."""
        return int(self.waveform.shape[-1])

    @property
    def duration(self) -> float:
        """Duration in seconds."""
        return self.num_frames / self.sample_rate

    def validate(self, min_duration: float, max_duration: float) -> None:
        """Check the sample is eligible for feature extraction.

        Raises:
            InvalidAudioError: If the buffer is empty, contains non-finite
                values, or its duration is outside [min_duration, max_duration].
        """
        if self.num_frames == 0:
            raise InvalidAudioError("Audio sample is empty")
        if not np.isfinite(self.waveform).all():
            raise InvalidAudioError("Audio sample contains non-finite values")
        if self.duration < min_duration:
            raise InvalidAudioError(
                f"Audio duration ({self.duration:.2f}s) is less than minimum "
                f"({min_duration}s)"
            )
        if self.duration > max_duration:
            raise InvalidAudioError(
                f"Audio duration ({self.duration:.2f}s) exceeds maximum "
                f"({max_duration}s)"
            )
