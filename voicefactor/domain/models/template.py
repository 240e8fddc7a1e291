"""Voice template domain model."""

from dataclasses import dataclass, field
from datetime import UTC, datetime

from ulid import ULID

from voicefactor.domain.models.embedding import Embedding


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


@dataclass
class VoiceTemplate:
    """A user's enrolled voice reference for one extractor version."""

    user_id: str
    extractor_version: str
    embedding: Embedding  # aggregate (centroid) embedding
    sample_embeddings: list[Embedding] = field(default_factory=list)
    quality: float = 0.0
    version: int = 1
    is_active: bool = True
    public_id: str = field(default_factory=_generate_ulid)
    created_at: datetime = field(default_factory=_utc_now)
    updated_at: datetime = field(default_factory=_utc_now)

    @property
    def dim(self) -> int:
        """Dimensionality of the template embedding."""
        return self.embedding.dim


@dataclass(frozen=True)
class TemplateVersion:
    """Handle returned when a new template version becomes active."""

    user_id: str
    extractor_version: str
    version: int
    public_id: str
    quality: float
