"""Store Protocols for templates and the verification audit log."""

from collections.abc import Sequence
from typing import Protocol

from voicefactor.domain.models import (
    Embedding,
    TemplateVersion,
    VerificationAttempt,
    VoiceTemplate,
)


class TemplateStoreProtocol(Protocol):
    """Protocol for versioned voice template persistence."""

    def put(
        self,
        user_id: str,
        embeddings: Embedding | Sequence[Embedding],
        quality: float,
    ) -> TemplateVersion:
        """Store a new template version and make it the active one.

        Args:
            user_id: Owner of the template.
            embeddings: Aggregate embedding, or per-sample embeddings to aggregate.
            quality: Aggregate quality score in [0, 1].

        Returns:
            The newly activated TemplateVersion.

        Raises:
            QualityBelowThresholdError: If quality is below the configured minimum.
        """
        ...

    def get_active(
        self, user_id: str, extractor_version: str | None = None
    ) -> VoiceTemplate | None:
        """Get the active template, or None if the user has none."""
        ...

    def revoke(self, user_id: str, extractor_version: str | None = None) -> int:
        """Deactivate active template(s). Returns how many were deactivated."""
        ...


class AttemptLogProtocol(Protocol):
    """Protocol for the append-only verification audit log."""

    def append(self, attempt: VerificationAttempt) -> VerificationAttempt:
        """Append an attempt record."""
        ...

    def list_for_user(
        self, user_id: str, limit: int = 20
    ) -> list[VerificationAttempt]:
        """Most recent attempts for a user, newest first."""
        ...
