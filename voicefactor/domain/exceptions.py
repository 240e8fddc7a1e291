"""Error taxonomy for enrollment and verification.

Every error carries the ``ReasonCode`` reported to callers. All of them are
recoverable at the request level: the user can retry, re-capture or
re-enroll.
"""

from voicefactor.domain.models import ReasonCode


class VoiceAuthError(Exception):
    """Base exception for the voice authentication engine."""

    reason: ReasonCode = ReasonCode.INTERNAL_ERROR


class InputError(VoiceAuthError):
    """Malformed request: bad audio or missing identity."""

    reason = ReasonCode.INVALID_AUDIO


class InvalidAudioError(InputError):
    """Audio buffer is empty, non-finite or outside the duration bounds."""

    pass


class UnsupportedFormatError(InputError):
    """Sample rate or channel count outside the supported range."""

    reason = ReasonCode.UNSUPPORTED_FORMAT


class MissingIdentityError(InputError):
    """No authenticated identity was supplied."""

    reason = ReasonCode.MISSING_IDENTITY


class SignalQualityError(VoiceAuthError):
    """Captured audio is not good enough to build or check a voiceprint."""

    pass


class InsufficientSignalError(SignalQualityError):
    """No continuous speech energy above the silence threshold."""

    reason = ReasonCode.INSUFFICIENT_SIGNAL


class EnrollmentIncompleteError(SignalQualityError):
    """Too few captures survived extraction."""

    reason = ReasonCode.ENROLLMENT_INCOMPLETE


class InconsistentSamplesError(SignalQualityError):
    """Enrollment captures disagree with each other."""

    reason = ReasonCode.INCONSISTENT_SAMPLES


class QualityBelowThresholdError(SignalQualityError):
    """Aggregate template quality is below the configured minimum."""

    reason = ReasonCode.QUALITY_BELOW_THRESHOLD


class VersionMismatchError(VoiceAuthError):
    """Candidate and template come from different extractor versions."""

    reason = ReasonCode.VERSION_MISMATCH
