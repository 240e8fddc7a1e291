"""Database models (SQLModel)."""

from datetime import UTC, datetime

import numpy as np
from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel
from ulid import ULID


def _generate_ulid() -> str:
    """Generate a new ULID string."""
    return str(ULID())


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes read back from SQLite."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class VoiceTemplateModel(SQLModel, table=True):
    """One version of a user's voice template.

    Rows are never updated in place except for the superseded/revoked stamps,
    so the full history stays available for audit.
    """

    __tablename__ = "voice_templates"  # pyright: ignore[reportAssignmentType]
    __table_args__ = (
        UniqueConstraint(
            "user_id", "extractor_version", "version", name="uq_template_version"
        ),
    )

    id: int | None = Field(default=None, primary_key=True)
    public_id: str = Field(
        default_factory=_generate_ulid,
        unique=True,
        index=True,
        max_length=26,
    )
    user_id: str = Field(index=True, max_length=255)
    extractor_version: str = Field(max_length=64)
    version: int = Field()
    dim: int = Field()
    embedding: bytes = Field()  # aggregate, float32
    sample_embeddings: bytes = Field()  # sample_count x dim float32, row-major
    sample_count: int = Field(default=0)
    quality: float = Field()
    created_at: datetime = Field(default_factory=_utc_now)
    updated_at: datetime = Field(default_factory=_utc_now)
    superseded_at: datetime | None = Field(default=None)
    revoked_at: datetime | None = Field(default=None)

    @staticmethod
    def serialize_embeddings(vectors: list[np.ndarray]) -> bytes:
        """Pack same-length vectors into one float32 buffer."""
        if not vectors:
            return b""
        return np.stack(vectors).astype(np.float32).tobytes()

    @staticmethod
    def deserialize_embeddings(data: bytes, dim: int) -> np.ndarray:
        """Unpack a buffer written by ``serialize_embeddings``."""
        return np.frombuffer(data, dtype=np.float32).reshape(-1, dim)


class ActiveTemplateModel(SQLModel, table=True):
    """Pointer to the active template per (user, extractor version).

    The primary key allows at most one active template per pair; swapping
    the pointer in the same transaction as the insert makes activation atomic.
    """

    __tablename__ = "active_templates"  # pyright: ignore[reportAssignmentType]

    user_id: str = Field(primary_key=True, max_length=255)
    extractor_version: str = Field(primary_key=True, max_length=64)
    template_id: int = Field(foreign_key="voice_templates.id", index=True)
    activated_at: datetime = Field(default_factory=_utc_now)


class VerificationAttemptModel(SQLModel, table=True):
    """Append-only verification audit record."""

    __tablename__ = "verification_attempts"  # pyright: ignore[reportAssignmentType]

    id: int | None = Field(default=None, primary_key=True)
    public_id: str = Field(
        default_factory=_generate_ulid,
        unique=True,
        index=True,
        max_length=26,
    )
    user_id: str = Field(index=True, max_length=255)
    decision: str = Field(max_length=16)
    reason: str = Field(max_length=64)
    score: float | None = Field(default=None)
    extractor_version: str | None = Field(default=None, max_length=64)
    created_at: datetime = Field(default_factory=_utc_now, index=True)


class RateLimitCounterModel(SQLModel, table=True):
    """Failed verification counter for one user."""

    __tablename__ = "rate_limit_counters"  # pyright: ignore[reportAssignmentType]

    user_id: str = Field(primary_key=True, max_length=255)
    failed_count: int = Field(default=0)
    window_started_at: datetime | None = Field(default=None)
    updated_at: datetime = Field(default_factory=_utc_now)
