"""Engine layer - signal analysis and feature extractors."""

from voicefactor.engine.voiceprint import SpectralVoiceprint

__all__ = ["SpectralVoiceprint"]
