"""Voice template store for database operations."""

import logging
import math
from collections.abc import Sequence
from datetime import UTC, datetime

from sqlalchemy import Engine, func
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, col, select

from voicefactor.database.exceptions import TemplateConflictError
from voicefactor.database.locks import KeyedLock
from voicefactor.database.models import (
    ActiveTemplateModel,
    VoiceTemplateModel,
    as_utc,
)
from voicefactor.database.settings import settings
from voicefactor.domain.exceptions import QualityBelowThresholdError
from voicefactor.domain.models import Embedding, TemplateVersion, VoiceTemplate
from voicefactor.engine.voiceprint import compute_centroid

logger = logging.getLogger(__name__)


class SqlTemplateStore:
    """Versioned template storage with one active template per extractor version.

    Implements TemplateStoreProtocol from voicefactor.domain.protocols.store.
    """

    def __init__(
        self,
        engine: Engine,
        min_quality: float | None = None,
        locks: KeyedLock | None = None,
    ) -> None:
        """Initialize store.

        Args:
            engine: SQLAlchemy engine; each operation opens its own session.
            min_quality: Templates below this quality are refused.
            locks: Per-user write locks, shared with other stores if needed.
        """
        self.engine = engine
        self.min_quality = (
            min_quality if min_quality is not None else settings.min_template_quality
        )
        self._locks = locks or KeyedLock()

    def _to_domain(self, model: VoiceTemplateModel, is_active: bool) -> VoiceTemplate:
        """Convert database model to domain model."""
        samples = VoiceTemplateModel.deserialize_embeddings(
            model.sample_embeddings, model.dim
        )
        return VoiceTemplate(
            user_id=model.user_id,
            extractor_version=model.extractor_version,
            embedding=Embedding.from_bytes(model.embedding, model.extractor_version),
            sample_embeddings=[
                Embedding(row.copy(), model.extractor_version) for row in samples
            ],
            quality=model.quality,
            version=model.version,
            is_active=is_active,
            public_id=model.public_id,
            created_at=as_utc(model.created_at),
            updated_at=as_utc(model.updated_at),
        )

    def put(
        self,
        user_id: str,
        embeddings: Embedding | Sequence[Embedding],
        quality: float,
    ) -> TemplateVersion:
        """Store a new template version and make it the active one.

        The previous active template for the same extractor version is
        superseded in the same transaction, so readers see either the old or
        the new template, never both or neither.

        Args:
            user_id: Owner of the template.
            embeddings: Aggregate embedding, or per-sample embeddings to aggregate.
            quality: Aggregate quality score in [0, 1].

        Returns:
            The newly activated TemplateVersion.

        Raises:
            ValueError: If no embeddings are given or they disagree on
                extractor version or dimension.
            QualityBelowThresholdError: If quality is below ``min_quality``.
            TemplateConflictError: If another writer activated a template
                for the same user concurrently.
        """
        if isinstance(embeddings, Embedding):
            embeddings = [embeddings]
        samples = list(embeddings)
        if not samples:
            raise ValueError("At least one embedding is required")

        extractor_version = samples[0].extractor_version
        dim = samples[0].dim
        for sample in samples[1:]:
            if sample.extractor_version != extractor_version:
                raise ValueError(
                    f"Mixed extractor versions: '{extractor_version}' "
                    f"and '{sample.extractor_version}'"
                )
            if sample.dim != dim:
                raise ValueError(f"Mixed dimensions: {dim} and {sample.dim}")

        if math.isnan(quality) or quality < self.min_quality:
            raise QualityBelowThresholdError(
                f"Template quality {quality:.3f} is below {self.min_quality}"
            )

        aggregate = compute_centroid([s.vector for s in samples])

        with self._locks.hold(user_id), Session(self.engine) as session:
            now = datetime.now(UTC)
            try:
                latest = session.exec(
                    select(func.max(VoiceTemplateModel.version)).where(
                        VoiceTemplateModel.user_id == user_id,
                        VoiceTemplateModel.extractor_version == extractor_version,
                    )
                ).one()
                model = VoiceTemplateModel(
                    user_id=user_id,
                    extractor_version=extractor_version,
                    version=(latest or 0) + 1,
                    dim=dim,
                    embedding=Embedding(aggregate, extractor_version).to_bytes(),
                    sample_embeddings=VoiceTemplateModel.serialize_embeddings(
                        [s.vector for s in samples]
                    ),
                    sample_count=len(samples),
                    quality=float(quality),
                    created_at=now,
                    updated_at=now,
                )
                session.add(model)
                session.flush()

                pointer = session.exec(
                    select(ActiveTemplateModel).where(
                        ActiveTemplateModel.user_id == user_id,
                        ActiveTemplateModel.extractor_version == extractor_version,
                    )
                ).first()
                if pointer is None:
                    pointer = ActiveTemplateModel(
                        user_id=user_id,
                        extractor_version=extractor_version,
                        template_id=model.id,
                        activated_at=now,
                    )
                else:
                    previous = session.get(VoiceTemplateModel, pointer.template_id)
                    if previous is not None:
                        previous.superseded_at = now
                        previous.updated_at = now
                        session.add(previous)
                    pointer.template_id = model.id
                    pointer.activated_at = now
                session.add(pointer)
                session.commit()
            except IntegrityError as e:
                session.rollback()
                raise TemplateConflictError(
                    f"Concurrent template write for user '{user_id}'"
                ) from e

            session.refresh(model)
            logger.info(
                f"Activated template v{model.version} for user {user_id} "
                f"({extractor_version}, {len(samples)} samples)"
            )
            return TemplateVersion(
                user_id=user_id,
                extractor_version=extractor_version,
                version=model.version,
                public_id=model.public_id,
                quality=model.quality,
            )

    def get_active(
        self, user_id: str, extractor_version: str | None = None
    ) -> VoiceTemplate | None:
        """Get the active template, or None if the user has none.

        Args:
            user_id: Owner of the template.
            extractor_version: Restrict to one extractor version. Without it,
                the most recently activated template is returned.
        """
        statement = (
            select(VoiceTemplateModel)
            .join(
                ActiveTemplateModel,
                col(ActiveTemplateModel.template_id) == col(VoiceTemplateModel.id),
            )
            .where(ActiveTemplateModel.user_id == user_id)
        )
        if extractor_version is not None:
            statement = statement.where(
                ActiveTemplateModel.extractor_version == extractor_version
            )
        statement = statement.order_by(
            col(ActiveTemplateModel.activated_at).desc(),
            col(VoiceTemplateModel.id).desc(),
        )
        with Session(self.engine) as session:
            model = session.exec(statement).first()
            if model is None:
                return None
            return self._to_domain(model, is_active=True)

    def revoke(self, user_id: str, extractor_version: str | None = None) -> int:
        """Deactivate active template(s), keeping them in history.

        Revoking a user without an active template is a no-op.

        Returns:
            Number of templates deactivated.
        """
        with self._locks.hold(user_id), Session(self.engine) as session:
            statement = select(ActiveTemplateModel).where(
                ActiveTemplateModel.user_id == user_id
            )
            if extractor_version is not None:
                statement = statement.where(
                    ActiveTemplateModel.extractor_version == extractor_version
                )
            pointers = session.exec(statement).all()
            now = datetime.now(UTC)
            for pointer in pointers:
                template = session.get(VoiceTemplateModel, pointer.template_id)
                if template is not None:
                    template.revoked_at = now
                    template.updated_at = now
                    session.add(template)
                session.delete(pointer)
            session.commit()
            return len(pointers)

    def history(self, user_id: str) -> list[VoiceTemplate]:
        """All template versions of a user, oldest first."""
        with Session(self.engine) as session:
            active_ids = set(
                session.exec(
                    select(ActiveTemplateModel.template_id).where(
                        ActiveTemplateModel.user_id == user_id
                    )
                ).all()
            )
            models = session.exec(
                select(VoiceTemplateModel)
                .where(VoiceTemplateModel.user_id == user_id)
                .order_by(col(VoiceTemplateModel.id))
            ).all()
            return [self._to_domain(m, is_active=m.id in active_ids) for m in models]

    def purge(self, user_id: str) -> int:
        """Delete every template of a user, history included.

        Returns:
            Number of template rows deleted.
        """
        with self._locks.hold(user_id), Session(self.engine) as session:
            pointers = session.exec(
                select(ActiveTemplateModel).where(
                    ActiveTemplateModel.user_id == user_id
                )
            ).all()
            for pointer in pointers:
                session.delete(pointer)
            session.flush()

            models = session.exec(
                select(VoiceTemplateModel).where(VoiceTemplateModel.user_id == user_id)
            ).all()
            for model in models:
                session.delete(model)
            session.commit()
            logger.info(f"Purged {len(models)} template(s) for user {user_id}")
            return len(models)
