"""Verification service for login-time voice checks.

Every attempt walks the same state machine:

    RECEIVED -> EXTRACTING -> MATCHING -> DECIDED -> RECORDED
                     \\______________________/

Extraction failures jump straight to DECIDED. Every path ends in RECORDED,
so each call leaves exactly one audit record behind.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from enum import Enum
from typing import Any

from voicefactor.audio.sample import AudioSample
from voicefactor.audio.settings import settings as audio_settings
from voicefactor.domain.exceptions import (
    SignalQualityError,
    UnsupportedFormatError,
    VersionMismatchError,
)
from voicefactor.domain.identity import AuthenticatedIdentity, require_identity
from voicefactor.domain.models import (
    Decision,
    Embedding,
    ReasonCode,
    VerificationAttempt,
    VoiceTemplate,
)
from voicefactor.domain.protocols import (
    AttemptLogProtocol,
    FeatureExtractorProtocol,
    LivenessCheckProtocol,
    RateLimiterProtocol,
    TemplateStoreProtocol,
)
from voicefactor.domain_service.matching import MatchingEngine
from voicefactor.engine.exceptions import EngineError

logger = logging.getLogger(__name__)


class VerifyState(Enum):
    """States for the verification flow."""

    RECEIVED = "received"
    EXTRACTING = "extracting"
    MATCHING = "matching"
    DECIDED = "decided"
    RECORDED = "recorded"


_TRANSITIONS: dict[VerifyState, frozenset[VerifyState]] = {
    VerifyState.RECEIVED: frozenset({VerifyState.EXTRACTING}),
    VerifyState.EXTRACTING: frozenset({VerifyState.MATCHING, VerifyState.DECIDED}),
    VerifyState.MATCHING: frozenset({VerifyState.DECIDED}),
    VerifyState.DECIDED: frozenset({VerifyState.RECORDED}),
    VerifyState.RECORDED: frozenset(),
}


class IllegalTransitionError(RuntimeError):
    """Raised when a verification context is moved along a missing edge."""

    pass


@dataclass
class VerificationContext:
    """Per-attempt state carried through the verification state machine."""

    user_id: str
    state: VerifyState = VerifyState.RECEIVED
    history: list[VerifyState] = field(default_factory=lambda: [VerifyState.RECEIVED])
    embedding: Embedding | None = None
    score: float | None = None
    decision: Decision | None = None
    reason: ReasonCode | None = None
    retry_after: timedelta | None = None
    attempt_counted: bool = False

    def advance(self, state: VerifyState) -> None:
        """Move to ``state``.

        Raises:
            IllegalTransitionError: If the transition is not allowed.
        """
        if state not in _TRANSITIONS[self.state]:
            raise IllegalTransitionError(
                f"Cannot move from {self.state.value} to {state.value}"
            )
        self.state = state
        self.history.append(state)

    def decide(self, decision: Decision, reason: ReasonCode) -> None:
        """Enter DECIDED with the given decision."""
        self.advance(VerifyState.DECIDED)
        self.decision = decision
        self.reason = reason


@dataclass
class VerificationOutcome:
    """Result of a verification attempt.

    ``score`` is for trusted internal callers only; ``to_public`` drops it.
    """

    user_id: str
    decision: Decision
    reason: ReasonCode
    attempt_id: str
    score: float | None = None
    retry_after: timedelta | None = None

    @property
    def accepted(self) -> bool:
        """Whether the voice factor passed."""
        return self.decision is Decision.ACCEPT

    def to_public(self) -> dict[str, Any]:
        """Representation safe to return to the end-user-facing surface."""
        return {
            "decision": self.decision.value,
            "reason": self.reason.value,
            "retry_after_seconds": (
                int(self.retry_after.total_seconds())
                if self.retry_after is not None
                else None
            ),
        }


class VerificationOrchestrator:
    """End-to-end login-time voice verification."""

    def __init__(
        self,
        extractor: FeatureExtractorProtocol,
        template_store: TemplateStoreProtocol,
        rate_limiter: RateLimiterProtocol,
        attempt_log: AttemptLogProtocol,
        matching_engine: MatchingEngine | None = None,
        liveness_check: LivenessCheckProtocol | None = None,
    ) -> None:
        """Initialize verification orchestrator.

        Args:
            extractor: Feature extractor producing candidate embeddings.
            template_store: Source of the active template.
            rate_limiter: Failed-attempt counter and lockout policy.
            attempt_log: Append-only audit log.
            matching_engine: Scoring and decision policy.
            liveness_check: Optional anti-spoofing check run before matching.
        """
        self.extractor = extractor
        self.template_store = template_store
        self.rate_limiter = rate_limiter
        self.attempt_log = attempt_log
        self.matching_engine = matching_engine or MatchingEngine()
        self.liveness_check = liveness_check

    def verify(
        self,
        identity: AuthenticatedIdentity,
        sample: AudioSample,
    ) -> VerificationOutcome:
        """Verify a live sample against the user's active template.

        Args:
            identity: Identity from the authenticated session.
            sample: Decoded verification capture.

        Returns:
            VerificationOutcome. Rejections are outcomes, not exceptions.

        Raises:
            MissingIdentityError: If no authenticated identity is given.
            InvalidAudioError: If the sample is malformed or out of duration bounds.
        """
        user_id = require_identity(identity)
        sample.validate(audio_settings.min_duration, audio_settings.max_duration)

        context = VerificationContext(user_id=user_id)
        embedding = self._extract(context, sample)
        if embedding is not None:
            self._match(context, embedding)
        return self._record(context)

    def _extract(
        self, context: VerificationContext, sample: AudioSample
    ) -> Embedding | None:
        context.advance(VerifyState.EXTRACTING)
        try:
            embedding = self.extractor.extract(sample)
            live = self.liveness_check is None or self.liveness_check.is_live(sample)
        except (SignalQualityError, UnsupportedFormatError) as e:
            logger.info(f"Extraction failed for user {context.user_id}: {e}")
            context.decide(Decision.REJECT, ReasonCode.EXTRACTION_FAILED)
            return None
        except EngineError:
            logger.exception(f"Extractor error for user {context.user_id}")
            context.decide(Decision.REJECT, ReasonCode.EXTRACTION_FAILED)
            return None
        except Exception:
            logger.exception(f"Extraction crashed for user {context.user_id}")
            context.decide(Decision.REJECT, ReasonCode.INTERNAL_ERROR)
            return None

        if not live:
            logger.warning(f"Liveness check failed for user {context.user_id}")
            context.decide(Decision.REJECT, ReasonCode.LIVENESS_FAILED)
            return None

        context.embedding = embedding
        context.advance(VerifyState.MATCHING)
        return embedding

    def _match(self, context: VerificationContext, embedding: Embedding) -> None:
        try:
            # Checked and counted in one step; locked-out users never get a
            # fresh comparison
            lock = self.rate_limiter.begin_attempt(context.user_id)
            if lock.locked:
                context.retry_after = lock.retry_after
                context.decide(Decision.REJECT, ReasonCode.LOCKED_OUT)
                return
            context.attempt_counted = True

            template = self._active_template(context.user_id)
            if template is None:
                context.decide(Decision.REJECT, ReasonCode.NO_TEMPLATE)
                return

            score = self.matching_engine.score(embedding, template)
        except VersionMismatchError as e:
            logger.error(f"System fault verifying user {context.user_id}: {e}")
            context.decide(Decision.REJECT, ReasonCode.VERSION_MISMATCH)
            return
        except Exception:
            logger.exception(f"Matching failed for user {context.user_id}")
            context.decide(Decision.REJECT, ReasonCode.INTERNAL_ERROR)
            return

        context.score = score
        decision = self.matching_engine.decide(score)
        reason = (
            ReasonCode.MATCHED
            if decision is Decision.ACCEPT
            else ReasonCode.BELOW_THRESHOLD
        )
        context.decide(decision, reason)

    def _active_template(self, user_id: str) -> VoiceTemplate | None:
        """Template for the current extractor, else whatever is active."""
        template = self.template_store.get_active(user_id, self.extractor.version)
        if template is None:
            # Only reached to tell a version mismatch from a missing enrollment
            template = self.template_store.get_active(user_id)
        return template

    def _record(self, context: VerificationContext) -> VerificationOutcome:
        if context.decision is None or context.reason is None:
            raise IllegalTransitionError(
                f"Cannot record an undecided attempt in state {context.state.value}"
            )
        attempt = self.attempt_log.append(
            VerificationAttempt(
                user_id=context.user_id,
                decision=context.decision,
                reason=context.reason,
                score=context.score,
                extractor_version=self.extractor.version,
            )
        )

        if context.decision is Decision.ACCEPT:
            self.rate_limiter.reset(context.user_id)
        else:
            status = (
                self.rate_limiter.status(context.user_id)
                if context.attempt_counted
                else self.rate_limiter.record_failure(context.user_id)
            )
            if status.locked and context.retry_after is None:
                context.retry_after = status.retry_after

        context.advance(VerifyState.RECORDED)
        logger.info(
            f"Verification for user {context.user_id}: "
            f"{context.decision.value} ({context.reason.value})"
        )
        return VerificationOutcome(
            user_id=context.user_id,
            decision=context.decision,
            reason=context.reason,
            attempt_id=attempt.public_id,
            score=context.score,
            retry_after=context.retry_after,
        )
