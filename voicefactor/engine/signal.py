"""Signal analysis shared by the feature extractors.

Frame energies, speech presence, SNR estimation and format normalization.
All functions are pure and run in time linear in the input length.
"""

import numpy as np

from voicefactor.audio.sample import AudioSample
from voicefactor.engine.exceptions import (
    AudioConversionError,
    NoSpeechDetectedError,
    SampleFormatError,
)
from voicefactor.engine.settings import settings

# Power floor for log computations
_EPS = 1e-10


def ensure_mono(audio: np.ndarray) -> np.ndarray:
    """Mix a ``(channels, n)`` waveform down to mono.

    Raises:
        AudioConversionError: If the array is not 1-D or 2-D.
    """
    if audio.ndim == 1:
        return audio

    if audio.ndim == 2:
        return np.mean(audio, axis=0).astype(np.float32)

    raise AudioConversionError(f"Unexpected audio shape: {audio.shape}")


def resample_audio(
    audio: np.ndarray,
    original_sr: int,
    target_sr: int | None = None,
) -> np.ndarray:
    """Resample audio to target sample rate.

    Args:
        audio: Input audio samples as float32 numpy array.
        original_sr: Original sample rate.
        target_sr: Target sample rate. Defaults to settings.target_sample_rate.

    Returns:
        Resampled audio as float32 numpy array.
    """
    if target_sr is None:
        target_sr = settings.target_sample_rate

    if original_sr == target_sr:
        return audio

    # Simple linear interpolation resampling
    new_length = int(len(audio) * target_sr / original_sr)
    indices = np.linspace(0, len(audio) - 1, new_length)
    resampled = np.interp(indices, np.arange(len(audio)), audio)

    return resampled.astype(np.float32)


def check_format(sample: AudioSample) -> None:
    """Reject sample rates and channel counts outside the supported range.

    Raises:
        SampleFormatError: If the format is unsupported.
    """
    if not settings.min_sample_rate <= sample.sample_rate <= settings.max_sample_rate:
        raise SampleFormatError(
            f"Unsupported sample rate {sample.sample_rate} Hz "
            f"(supported: {settings.min_sample_rate}-{settings.max_sample_rate} Hz)"
        )
    if not 1 <= sample.channels <= settings.max_channels:
        raise SampleFormatError(
            f"Unsupported channel count {sample.channels} "
            f"(supported: 1-{settings.max_channels})"
        )


def prepare_waveform(sample: AudioSample) -> np.ndarray:
    """Check format, mix to mono and resample to the target rate."""
    check_format(sample)
    mono = ensure_mono(sample.waveform)
    return resample_audio(mono, sample.sample_rate, settings.target_sample_rate)


def frame_signal(
    audio: np.ndarray,
    sample_rate: int,
    frame_length: float | None = None,
    frame_hop: float | None = None,
) -> np.ndarray:
    """Split audio into overlapping frames, shape ``(num_frames, frame_len)``.

    Audio shorter than one frame is zero-padded to a single frame.
    """
    frame_len = int(round((frame_length or settings.frame_length) * sample_rate))
    hop = int(round((frame_hop or settings.frame_hop) * sample_rate))

    if len(audio) < frame_len:
        audio = np.pad(audio, (0, frame_len - len(audio)))

    windows = np.lib.stride_tricks.sliding_window_view(audio, frame_len)
    return windows[::hop]


def frame_power(audio: np.ndarray, sample_rate: int) -> np.ndarray:
    """Mean-square power of each frame."""
    frames = frame_signal(audio.astype(np.float64), sample_rate)
    return np.mean(frames**2, axis=1)


def longest_run(mask: np.ndarray) -> int:
    """Length of the longest run of True values."""
    if not mask.any():
        return 0
    padded = np.concatenate(([0], mask.astype(np.int8), [0]))
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return int((ends - starts).max())


def continuous_speech_duration(
    audio: np.ndarray,
    sample_rate: int,
    threshold_db: float | None = None,
) -> float:
    """Duration in seconds of the longest run of frames above the silence threshold."""
    if threshold_db is None:
        threshold_db = settings.silence_threshold_db

    power = frame_power(audio, sample_rate)
    active = 10.0 * np.log10(power + _EPS) > threshold_db
    run = longest_run(active)
    if run == 0:
        return 0.0
    return (run - 1) * settings.frame_hop + settings.frame_length


def ensure_speech(
    audio: np.ndarray,
    sample_rate: int,
    threshold_db: float | None = None,
    min_duration: float | None = None,
) -> float:
    """Require continuous speech energy of at least ``min_duration`` seconds.

    Returns:
        The measured continuous speech duration.

    Raises:
        NoSpeechDetectedError: If no long enough active run exists.
    """
    if min_duration is None:
        min_duration = settings.min_speech_duration

    duration = continuous_speech_duration(audio, sample_rate, threshold_db)
    if duration < min_duration:
        raise NoSpeechDetectedError(
            f"Continuous speech of {duration:.2f}s is below the required "
            f"{min_duration}s"
        )
    return duration


def estimate_snr_db(
    audio: np.ndarray,
    sample_rate: int,
    threshold_db: float | None = None,
) -> float:
    """Estimate signal-to-noise ratio in dB.

    Signal power is the mean power of active frames. The noise floor is the
    10th percentile of inactive frames, never lower than the silence
    threshold itself.
    """
    if threshold_db is None:
        threshold_db = settings.silence_threshold_db

    power = frame_power(audio, sample_rate)
    threshold_power = 10.0 ** (threshold_db / 10.0)
    active = power > threshold_power
    if not active.any():
        return 0.0

    signal_power = float(np.mean(power[active]))
    inactive = power[~active]
    noise_power = threshold_power
    if inactive.size:
        noise_power = max(float(np.percentile(inactive, 10)), threshold_power)

    return 10.0 * float(np.log10(signal_power / noise_power))


def normalize_loudness(audio: np.ndarray, target_rms: float = 0.1) -> np.ndarray:
    """Scale audio to a fixed RMS level."""
    rms = float(np.sqrt(np.mean(audio.astype(np.float64) ** 2)))
    if rms < _EPS:
        return audio.astype(np.float32)
    return (audio * (target_rms / rms)).astype(np.float32)
