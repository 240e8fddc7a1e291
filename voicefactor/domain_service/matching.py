"""Matching engine: similarity scoring and threshold decisions."""

import math

from pydantic import BaseModel, ConfigDict, Field

from voicefactor.domain.exceptions import VersionMismatchError
from voicefactor.domain.models import Decision, Embedding, VoiceTemplate
from voicefactor.domain_service.settings import settings
from voicefactor.engine.voiceprint import cosine_similarity


class DecisionPolicy(BaseModel):
    """Accept/reject threshold.

    The threshold trades false accepts against false rejects and must be
    calibrated against observed score distributions.
    """

    model_config = ConfigDict(frozen=True)

    threshold: float = Field(
        default_factory=lambda: settings.similarity_threshold,
        ge=-1.0,
        le=1.0,
    )


class MatchingEngine:
    """Scores candidate embeddings against templates and applies the policy."""

    def __init__(self, policy: DecisionPolicy | None = None) -> None:
        self.policy = policy or DecisionPolicy()

    def compare(self, a: Embedding, b: Embedding) -> float:
        """Cosine similarity of two embeddings of the same extractor version.

        Raises:
            VersionMismatchError: If the extractor versions differ.
            ValueError: If the dimensions differ.
        """
        if a.extractor_version != b.extractor_version:
            raise VersionMismatchError(
                f"Cannot compare '{a.extractor_version}' with '{b.extractor_version}'"
            )
        return cosine_similarity(a.vector, b.vector)

    def score(self, candidate: Embedding, template: VoiceTemplate) -> float:
        """Similarity of a candidate to a template's aggregate embedding, in [-1, 1].

        Raises:
            VersionMismatchError: If the candidate was extracted with a different
                extractor version than the template.
        """
        if candidate.extractor_version != template.extractor_version:
            raise VersionMismatchError(
                f"Candidate extractor '{candidate.extractor_version}' does not match "
                f"template extractor '{template.extractor_version}'"
            )
        return self.compare(candidate, template.embedding)

    def decide(self, score: float, policy: DecisionPolicy | None = None) -> Decision:
        """Accept only when the score is strictly above the threshold.

        A score equal to the threshold, or a NaN score, is rejected.
        """
        policy = policy or self.policy
        if math.isnan(score):
            return Decision.REJECT
        return Decision.ACCEPT if score > policy.threshold else Decision.REJECT
