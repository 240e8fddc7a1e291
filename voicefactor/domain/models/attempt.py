"""Verification decision and audit record models."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from ulid import ULID


class Decision(str, Enum):
    """Outcome of a verification attempt."""

    ACCEPT = "accept"
    REJECT = "reject"


class ReasonCode(str, Enum):
    """Why an enrollment or verification ended the way it did."""

    # verification
    MATCHED = "matched"
    BELOW_THRESHOLD = "below_threshold"
    EXTRACTION_FAILED = "extraction_failed"
    LIVENESS_FAILED = "liveness_failed"
    NO_TEMPLATE = "no_template"
    LOCKED_OUT = "locked_out"
    VERSION_MISMATCH = "version_mismatch"
    INTERNAL_ERROR = "internal_error"

    # enrollment
    ENROLLED = "enrolled"
    ENROLLMENT_INCOMPLETE = "enrollment_incomplete"
    INCONSISTENT_SAMPLES = "inconsistent_samples"
    QUALITY_BELOW_THRESHOLD = "quality_below_threshold"
    UNSUPPORTED_FORMAT = "unsupported_format"

    # per-capture discards and input errors
    INSUFFICIENT_SIGNAL = "insufficient_signal"
    INVALID_AUDIO = "invalid_audio"
    MISSING_IDENTITY = "missing_identity"


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


@dataclass(frozen=True)
class VerificationAttempt:
    """Append-only audit record written for every verification call.

    ``score`` is None when the attempt was decided without a comparison
    (lockout, missing template, extraction failure).
    """

    user_id: str
    decision: Decision
    reason: ReasonCode
    score: float | None = None
    extractor_version: str | None = None
    public_id: str = field(default_factory=_generate_ulid)
    created_at: datetime = field(default_factory=_utc_now)
