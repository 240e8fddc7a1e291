"""Engine exceptions."""

from voicefactor.domain.exceptions import (
    InsufficientSignalError,
    UnsupportedFormatError,
)


class EngineError(Exception):
    """Base exception for engine."""

    pass


class ModelNotLoadedError(EngineError):
    """Model is not loaded."""

    pass


class AudioConversionError(EngineError, UnsupportedFormatError):
    """Failed to convert audio format."""

    pass


class SpeakerEmbeddingError(EngineError):
    """Speaker embedding extraction error."""

    pass


class NoSpeechDetectedError(EngineError, InsufficientSignalError):
    """No continuous speech detected in audio."""

    pass


class SampleFormatError(EngineError, UnsupportedFormatError):
    """Sample rate or channel layout the extractor cannot handle."""

    pass
