"""Tests for audio decoding."""

import base64
import io

import numpy as np
import pytest
import soundfile as sf

from voicefactor.audio.converter import decode_audio, decode_base64_audio
from voicefactor.domain.exceptions import UnsupportedFormatError
from voicefactor.engine.exceptions import AudioConversionError

from .conftest import VOICE_A, harmonic_wave


def wav_bytes(audio: np.ndarray, sample_rate: int) -> bytes:
    """Encode audio as 16-bit PCM WAV."""
    buffer = io.BytesIO()
    sf.write(buffer, audio, sample_rate, format="WAV", subtype="PCM_16")
    return buffer.getvalue()


class TestDecodeAudio:
    """Tests for decode_audio."""

    def test_decode_wav(self):
        """A 16 kHz mono WAV decodes to the same length."""
        audio = harmonic_wave(VOICE_A, duration=2.0)
        sample = decode_audio(wav_bytes(audio, 16000))

        assert sample.sample_rate == 16000
        assert sample.channels == 1
        assert sample.waveform.dtype == np.float32
        assert sample.duration == pytest.approx(2.0, abs=0.05)
        assert np.max(np.abs(sample.waveform)) <= 1.0

    def test_decode_resamples(self):
        """A 44.1 kHz WAV is resampled to the target rate."""
        audio = harmonic_wave(VOICE_A, duration=2.0, sample_rate=44100)
        sample = decode_audio(wav_bytes(audio, 44100))

        assert sample.sample_rate == 16000
        assert sample.duration == pytest.approx(2.0, abs=0.05)

    def test_decode_stereo_to_mono(self):
        """Stereo input is mixed down to one channel."""
        mono = harmonic_wave(VOICE_A, duration=1.0)
        stereo = np.stack([mono, mono], axis=1)
        sample = decode_audio(wav_bytes(stereo, 16000))

        assert sample.channels == 1
        assert sample.waveform.ndim == 1

    def test_garbage_bytes(self):
        """Undecodable input raises AudioConversionError."""
        with pytest.raises(AudioConversionError):
            decode_audio(b"definitely not audio")

    def test_conversion_error_is_unsupported_format(self):
        """Decoding failures are reported as unsupported format input errors."""
        assert issubclass(AudioConversionError, UnsupportedFormatError)


class TestDecodeBase64Audio:
    """Tests for decode_base64_audio."""

    def test_plain_base64(self):
        """Plain base64 WAV decodes."""
        encoded = base64.b64encode(wav_bytes(harmonic_wave(VOICE_A, 1.0), 16000))
        sample = decode_base64_audio(encoded.decode(), container_format="wav")
        assert sample.duration == pytest.approx(1.0, abs=0.05)

    def test_data_url(self):
        """Data URLs have their prefix stripped."""
        encoded = base64.b64encode(wav_bytes(harmonic_wave(VOICE_A, 1.0), 16000))
        sample = decode_base64_audio("data:audio/wav;base64," + encoded.decode())
        assert sample.sample_rate == 16000

    def test_invalid_base64(self):
        """Malformed base64 raises AudioConversionError."""
        with pytest.raises(AudioConversionError, match="base64"):
            decode_base64_audio("not base64 !!!")
