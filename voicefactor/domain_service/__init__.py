"""Domain service layer."""

from voicefactor.domain_service.enrollment import (
    CaptureReport,
    EnrollmentOrchestrator,
    EnrollmentResult,
    EnrollmentStatus,
)
from voicefactor.domain_service.matching import DecisionPolicy, MatchingEngine
from voicefactor.domain_service.verify import (
    IllegalTransitionError,
    VerificationContext,
    VerificationOrchestrator,
    VerificationOutcome,
    VerifyState,
)

__all__ = [
    "CaptureReport",
    "DecisionPolicy",
    "EnrollmentOrchestrator",
    "EnrollmentResult",
    "EnrollmentStatus",
    "IllegalTransitionError",
    "MatchingEngine",
    "VerificationContext",
    "VerificationOrchestrator",
    "VerificationOutcome",
    "VerifyState",
]
