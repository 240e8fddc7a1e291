"""Audio layer - sample buffer, decoding and capture sessions."""

from voicefactor.audio.capture import CaptureSession, CaptureState, CaptureStateError
from voicefactor.audio.sample import AudioSample

__all__ = ["AudioSample", "CaptureSession", "CaptureState", "CaptureStateError"]
