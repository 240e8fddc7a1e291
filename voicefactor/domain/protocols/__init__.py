"""Domain protocols."""

from voicefactor.domain.protocols.extractor import (
    FeatureExtractorProtocol,
    LivenessCheckProtocol,
)
from voicefactor.domain.protocols.rate_limit import LockStatus, RateLimiterProtocol
from voicefactor.domain.protocols.store import (
    AttemptLogProtocol,
    TemplateStoreProtocol,
)

__all__ = [
    "AttemptLogProtocol",
    "FeatureExtractorProtocol",
    "LivenessCheckProtocol",
    "LockStatus",
    "RateLimiterProtocol",
    "TemplateStoreProtocol",
]
