"""Voiceprint implementations."""

from voicefactor.engine.voiceprint.similarity import (
    compute_centroid,
    cosine_similarity,
    l2_normalize,
)
from voicefactor.engine.voiceprint.spectral import SpectralVoiceprint

__all__ = [
    "SpectralVoiceprint",
    "compute_centroid",
    "cosine_similarity",
    "l2_normalize",
]
