"""Domain models."""

from voicefactor.domain.models.attempt import Decision, ReasonCode, VerificationAttempt
from voicefactor.domain.models.embedding import Embedding
from voicefactor.domain.models.template import TemplateVersion, VoiceTemplate

__all__ = [
    "Decision",
    "Embedding",
    "ReasonCode",
    "TemplateVersion",
    "VerificationAttempt",
    "VoiceTemplate",
]
