"""Feature extractor Protocol."""

from typing import Protocol

from voicefactor.audio.sample import AudioSample
from voicefactor.domain.models import Embedding


class FeatureExtractorProtocol(Protocol):
    """Turns an audio sample into a fixed-length embedding.

    Implementations must be deterministic for a fixed ``version``, produce
    ``dim``-dimensional output for every input, and be invariant to input gain.
    """

    @property
    def version(self) -> str:
        """Extractor version tag stamped on every embedding."""
        ...

    @property
    def dim(self) -> int:
        """Output dimensionality."""
        ...

    def extract(self, sample: AudioSample) -> Embedding:
        """Extract an embedding.

        Raises:
            InsufficientSignalError: If no continuous speech energy is found.
            UnsupportedFormatError: If sample rate or channel count is unsupported.
        """
        ...


class LivenessCheckProtocol(Protocol):
    """Anti-spoofing hook run on verification samples before matching."""

    def is_live(self, sample: AudioSample) -> bool:
        """Return False when the sample looks like a replay or synthesis."""
        ...
