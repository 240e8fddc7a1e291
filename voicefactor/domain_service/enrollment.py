"""Enrollment service for voice templates.

Manages the enrollment flow:
1. Validate and extract every capture, discarding silent or malformed ones
2. Require a minimum number of successful extractions
3. Check the captures agree with each other
4. Score template quality from SNR and consistency
5. Store the template as the new active version
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import numpy as np

from voicefactor.audio.sample import AudioSample
from voicefactor.audio.settings import settings as audio_settings
from voicefactor.domain.exceptions import (
    EnrollmentIncompleteError,
    InconsistentSamplesError,
    InputError,
    InsufficientSignalError,
    InvalidAudioError,
    SignalQualityError,
    UnsupportedFormatError,
)
from voicefactor.domain.identity import AuthenticatedIdentity, require_identity
from voicefactor.domain.models import Embedding, ReasonCode
from voicefactor.domain.protocols import FeatureExtractorProtocol, TemplateStoreProtocol
from voicefactor.domain_service.matching import MatchingEngine
from voicefactor.domain_service.settings import settings
from voicefactor.engine.settings import settings as engine_settings
from voicefactor.engine.signal import estimate_snr_db, prepare_waveform

logger = logging.getLogger(__name__)


class EnrollmentStatus(Enum):
    """Final status of an enrollment request."""

    ENROLLED = "enrolled"
    FAILED = "failed"


@dataclass
class CaptureReport:
    """What happened to one enrollment capture."""

    index: int
    accepted: bool
    reason: ReasonCode | None = None
    snr_db: float | None = None
    message: str | None = None


@dataclass
class EnrollmentResult:
    """Final enrollment result."""

    status: EnrollmentStatus
    user_id: str
    reason: ReasonCode
    version: int | None = None
    quality: float | None = None
    captures: list[CaptureReport] = field(default_factory=list)
    message: str | None = None

    @property
    def enrolled(self) -> bool:
        """Whether a template was stored."""
        return self.status is EnrollmentStatus.ENROLLED


class EnrollmentOrchestrator:
    """Turns several raw captures into one stored voice template."""

    def __init__(
        self,
        extractor: FeatureExtractorProtocol,
        template_store: TemplateStoreProtocol,
        matching_engine: MatchingEngine | None = None,
        *,
        min_successful_samples: int | None = None,
        max_attempts: int | None = None,
        consistency_threshold: float | None = None,
        reference_snr_db: float | None = None,
    ) -> None:
        """Initialize enrollment orchestrator.

        Args:
            extractor: Feature extractor producing embeddings.
            template_store: Store receiving the finished template.
            matching_engine: Used for pairwise consistency scoring.
            min_successful_samples: Captures that must survive extraction.
            max_attempts: Upper bound on captures per enrollment request.
            consistency_threshold: Minimum pairwise similarity between captures.
            reference_snr_db: SNR that earns a full SNR quality score.
        """
        self.extractor = extractor
        self.template_store = template_store
        self.matching_engine = matching_engine or MatchingEngine()
        self.min_successful_samples = (
            min_successful_samples or settings.min_successful_samples
        )
        self.max_attempts = max_attempts or settings.max_enrollment_attempts
        self.consistency_threshold = (
            consistency_threshold
            if consistency_threshold is not None
            else settings.consistency_threshold
        )
        self.reference_snr_db = reference_snr_db or settings.reference_snr_db
        if self.min_successful_samples < 2:
            raise ValueError("At least two samples are needed for a consistency check")

    def enroll(
        self,
        identity: AuthenticatedIdentity,
        captures: Sequence[AudioSample],
    ) -> EnrollmentResult:
        """Enroll the authenticated user from a list of captures.

        Args:
            identity: Identity from the authenticated session.
            captures: Ordered raw captures, at most ``max_attempts``.

        Returns:
            EnrollmentResult, ENROLLED with the new version or FAILED with a reason.

        Raises:
            MissingIdentityError: If no authenticated identity is given.
            InputError: If more captures than ``max_attempts`` are given.
        """
        user_id = require_identity(identity)
        if len(captures) > self.max_attempts:
            raise InputError(
                f"Too many captures: {len(captures)} (maximum {self.max_attempts})"
            )

        logger.info(f"Starting enrollment for user {user_id}: {len(captures)} captures")
        reports: list[CaptureReport] = []

        try:
            embeddings, snrs = self._extract_all(captures, reports)
            if len(embeddings) < self.min_successful_samples:
                raise EnrollmentIncompleteError(
                    f"Only {len(embeddings)} of {len(captures)} captures were usable "
                    f"({self.min_successful_samples} required)"
                )

            similarities = self._check_consistency(embeddings)
            quality = self._quality(snrs, similarities)
            version = self.template_store.put(user_id, embeddings, quality)

        except (SignalQualityError, UnsupportedFormatError) as e:
            logger.info(f"Enrollment failed for user {user_id}: {e.reason.value} ({e})")
            return EnrollmentResult(
                status=EnrollmentStatus.FAILED,
                user_id=user_id,
                reason=e.reason,
                captures=reports,
                message=str(e),
            )

        logger.info(
            f"Enrolled user {user_id}: version {version.version}, "
            f"extractor {version.extractor_version}, quality {quality:.3f}"
        )
        return EnrollmentResult(
            status=EnrollmentStatus.ENROLLED,
            user_id=user_id,
            reason=ReasonCode.ENROLLED,
            version=version.version,
            quality=quality,
            captures=reports,
        )

    def revoke(self, identity: AuthenticatedIdentity) -> None:
        """Revoke the user's voice templates. Revoking twice is a no-op."""
        user_id = require_identity(identity)
        revoked = self.template_store.revoke(user_id)
        logger.info(f"Revoked {revoked} active template(s) for user {user_id}")

    def _extract_all(
        self,
        captures: Sequence[AudioSample],
        reports: list[CaptureReport],
    ) -> tuple[list[Embedding], list[float]]:
        """Extract every capture, recording a report for each one."""
        embeddings: list[Embedding] = []
        snrs: list[float] = []

        for index, sample in enumerate(captures):
            try:
                sample.validate(audio_settings.min_duration, audio_settings.max_duration)
                embedding = self.extractor.extract(sample)
            except (InvalidAudioError, InsufficientSignalError) as e:
                logger.info(f"Discarded capture {index}: {e.reason.value} ({e})")
                reports.append(
                    CaptureReport(
                        index=index, accepted=False, reason=e.reason, message=str(e)
                    )
                )
                continue

            snr = estimate_snr_db(
                prepare_waveform(sample), engine_settings.target_sample_rate
            )
            embeddings.append(embedding)
            snrs.append(snr)
            reports.append(CaptureReport(index=index, accepted=True, snr_db=snr))

        return embeddings, snrs

    def _check_consistency(self, embeddings: list[Embedding]) -> list[float]:
        """Pairwise similarities; fail when any pair is below the threshold."""
        similarities = [
            self.matching_engine.compare(embeddings[i], embeddings[j])
            for i in range(len(embeddings))
            for j in range(i + 1, len(embeddings))
        ]
        lowest = min(similarities)
        if lowest < self.consistency_threshold:
            raise InconsistentSamplesError(
                f"Captures disagree: minimum pairwise similarity {lowest:.3f} "
                f"is below {self.consistency_threshold}"
            )
        return similarities

    def _quality(self, snrs: list[float], similarities: list[float]) -> float:
        """Average of an SNR score and a consistency score, both in [0, 1]."""
        snr_score = float(np.clip(np.mean(snrs) / self.reference_snr_db, 0.0, 1.0))
        consistency_score = float(np.clip(np.mean(similarities), 0.0, 1.0))
        return (snr_score + consistency_score) / 2
