"""Verification audit log store."""

from sqlalchemy import Engine
from sqlmodel import Session, col, select

from voicefactor.database.models import VerificationAttemptModel, as_utc
from voicefactor.domain.models import Decision, ReasonCode, VerificationAttempt


class SqlAttemptLog:
    """Append-only store of verification attempts.

    Implements AttemptLogProtocol from voicefactor.domain.protocols.store.
    There are no update or delete operations.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def _to_domain(self, model: VerificationAttemptModel) -> VerificationAttempt:
        """Convert database model to domain model."""
        return VerificationAttempt(
            user_id=model.user_id,
            decision=Decision(model.decision),
            reason=ReasonCode(model.reason),
            score=model.score,
            extractor_version=model.extractor_version,
            public_id=model.public_id,
            created_at=as_utc(model.created_at),
        )

    def append(self, attempt: VerificationAttempt) -> VerificationAttempt:
        """Append an attempt record.

        Args:
            attempt: The attempt to store.

        Returns:
            The stored attempt.
        """
        model = VerificationAttemptModel(
            public_id=attempt.public_id,
            user_id=attempt.user_id,
            decision=attempt.decision.value,
            reason=attempt.reason.value,
            score=attempt.score,
            extractor_version=attempt.extractor_version,
            created_at=attempt.created_at,
        )
        with Session(self.engine) as session:
            session.add(model)
            session.commit()
            session.refresh(model)
            return self._to_domain(model)

    def list_for_user(
        self, user_id: str, limit: int = 20
    ) -> list[VerificationAttempt]:
        """Most recent attempts for a user, newest first."""
        statement = (
            select(VerificationAttemptModel)
            .where(VerificationAttemptModel.user_id == user_id)
            .order_by(col(VerificationAttemptModel.id).desc())
            .limit(limit)
        )
        with Session(self.engine) as session:
            return [self._to_domain(m) for m in session.exec(statement).all()]
