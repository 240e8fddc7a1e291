"""Audio decoding using PyAV.

The capture layer uploads encoded audio (WAV, WebM, ...). Everything is
decoded to mono float32 PCM at the target sample rate before it reaches the
feature extractor.
"""

import base64
import binascii
import io

import av
import numpy as np

from voicefactor.audio.sample import AudioSample
from voicefactor.audio.settings import settings
from voicefactor.engine.exceptions import AudioConversionError


def decode_audio(
    data: bytes,
    target_sr: int | None = None,
    container_format: str | None = None,
) -> AudioSample:
    """Decode encoded audio bytes into a mono AudioSample.

    Args:
        data: Encoded audio bytes in any container PyAV understands.
        target_sr: Output sample rate. Defaults to settings.target_sample_rate.
        container_format: Optional container hint ("wav", "webm", ...).

    Returns:
        Mono float32 AudioSample at the target sample rate.

    Raises:
        AudioConversionError: If decoding fails.
    """
    if target_sr is None:
        target_sr = settings.target_sample_rate

    try:
        container = av.open(io.BytesIO(data), format=container_format)
    except Exception as e:
        raise AudioConversionError(f"Failed to open audio data: {e}") from e

    try:
        audio_stream = next((s for s in container.streams if s.type == "audio"), None)
        if audio_stream is None:
            raise AudioConversionError("No audio stream found in audio data")

        resampler = av.AudioResampler(format="s16", layout="mono", rate=target_sr)
        samples_list: list[np.ndarray] = []

        for frame in container.decode(audio_stream):
            for resampled in resampler.resample(frame):
                samples_list.append(resampled.to_ndarray().flatten())

        # Drain samples buffered inside the resampler
        for resampled in resampler.resample(None):
            samples_list.append(resampled.to_ndarray().flatten())

        if not samples_list:
            raise AudioConversionError("No audio samples decoded from audio data")

        samples = np.concatenate(samples_list).astype(np.float32) / 32768.0
        return AudioSample(waveform=samples, sample_rate=target_sr, channels=1)

    except AudioConversionError:
        raise
    except Exception as e:
        raise AudioConversionError(f"Failed to decode audio: {e}") from e
    finally:
        container.close()


def decode_base64_audio(
    encoded: str,
    target_sr: int | None = None,
    container_format: str | None = None,
) -> AudioSample:
    """Decode base64 (or data URL) audio into an AudioSample.

    Raises:
        AudioConversionError: If the payload is not valid base64 or audio.
    """
    if encoded.startswith("data:"):
        _, _, encoded = encoded.partition(",")
    try:
        data = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError) as e:
        raise AudioConversionError(f"Invalid base64 audio payload: {e}") from e
    return decode_audio(data, target_sr, container_format)
