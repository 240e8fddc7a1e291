"""Failed-attempt counter backed by the database."""

import logging
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from sqlalchemy import Engine, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session

from voicefactor.database.locks import KeyedLock
from voicefactor.database.models import RateLimitCounterModel, as_utc
from voicefactor.domain.protocols import LockStatus
from voicefactor.domain_service.settings import settings as service_settings

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class SqlRateLimiter:
    """Fixed-window lockout after too many rejected verifications.

    The window opens at the first failure. Once ``max_failed_attempts``
    failures land inside it, the user stays locked until the window closes;
    after that the counter starts over.

    Implements RateLimiterProtocol from voicefactor.domain.protocols.rate_limit.
    """

    def __init__(
        self,
        engine: Engine,
        max_failed_attempts: int | None = None,
        window: timedelta | None = None,
        clock: Callable[[], datetime] = _utc_now,
        locks: KeyedLock | None = None,
    ) -> None:
        self.engine = engine
        self.max_failed_attempts = (
            max_failed_attempts or service_settings.max_failed_attempts
        )
        self.window = window or timedelta(
            seconds=service_settings.lockout_window_seconds
        )
        self.clock = clock
        self._locks = locks or KeyedLock()

    def _window_end(
        self, row: RateLimitCounterModel | None, now: datetime
    ) -> datetime | None:
        """End of the open window, or None when no window is open."""
        if row is None or row.window_started_at is None:
            return None
        end = as_utc(row.window_started_at) + self.window
        return end if now < end else None

    def _window_open(self, row: RateLimitCounterModel | None, now: datetime) -> bool:
        return self._window_end(row, now) is not None

    def _status_of(
        self, row: RateLimitCounterModel | None, now: datetime
    ) -> LockStatus:
        end = self._window_end(row, now)
        if row is None or end is None:
            return LockStatus(locked=False, failed_count=0)
        if row.failed_count >= self.max_failed_attempts:
            return LockStatus(
                locked=True,
                failed_count=row.failed_count,
                retry_after=end - now,
            )
        return LockStatus(locked=False, failed_count=row.failed_count)

    def status(self, user_id: str) -> LockStatus:
        """Current lock status without modifying the counter."""
        with Session(self.engine) as session:
            row = session.get(RateLimitCounterModel, user_id)
            return self._status_of(row, self.clock())

    def begin_attempt(self, user_id: str) -> LockStatus:
        """Admit one verification attempt unless the user is locked out.

        The lock check and the count happen in one step: an admitted attempt
        is counted as a failure right away and ``reset`` clears it again when
        the attempt ends in an accept. Parallel attempts therefore cannot all
        get past the check before any of them is counted.

        Returns:
            Status before this attempt. ``locked`` means it was refused.
        """
        with self._locks.hold(user_id), Session(self.engine) as session:
            now = self.clock()
            row = session.get(RateLimitCounterModel, user_id)
            status = self._status_of(row, now)
            if status.locked:
                return status

            if row is None or not self._window_open(row, now):
                admitted = self._open_window(
                    session, user_id, row, now, limit=self.max_failed_attempts
                )
            else:
                admitted = self._increment(
                    session, user_id, now, limit=self.max_failed_attempts
                )

            if not admitted:
                # Another process took the last slot
                session.expire_all()
                row = session.get(RateLimitCounterModel, user_id)
                return self._status_of(row, now)
            return status

    def record_failure(self, user_id: str) -> LockStatus:
        """Count one rejected attempt and return the resulting status."""
        with self._locks.hold(user_id), Session(self.engine) as session:
            now = self.clock()
            row = session.get(RateLimitCounterModel, user_id)

            if row is None or not self._window_open(row, now):
                self._open_window(session, user_id, row, now)
            else:
                self._increment(session, user_id, now)

            session.expire_all()
            row = session.get(RateLimitCounterModel, user_id)
            status = self._status_of(row, now)
            if status.locked:
                logger.warning(
                    f"User {user_id} locked out after {status.failed_count} "
                    f"failed attempts"
                )
            return status

    def _open_window(
        self,
        session: Session,
        user_id: str,
        row: RateLimitCounterModel | None,
        now: datetime,
        limit: int | None = None,
    ) -> bool:
        """Start a new window holding one failure."""
        if row is not None:
            row.failed_count = 1
            row.window_started_at = now
            row.updated_at = now
            session.add(row)
            session.commit()
            return True

        session.add(
            RateLimitCounterModel(
                user_id=user_id,
                failed_count=1,
                window_started_at=now,
                updated_at=now,
            )
        )
        try:
            session.commit()
        except IntegrityError:
            # Another process created the row first
            session.rollback()
            return self._increment(session, user_id, now, limit=limit)
        return True

    def _increment(
        self,
        session: Session,
        user_id: str,
        now: datetime,
        limit: int | None = None,
    ) -> bool:
        """Add one failure in the database; with ``limit``, only below it."""
        statement = update(RateLimitCounterModel).where(
            RateLimitCounterModel.user_id == user_id
        )
        if limit is not None:
            statement = statement.where(RateLimitCounterModel.failed_count < limit)
        result = session.execute(
            statement.values(
                failed_count=RateLimitCounterModel.failed_count + 1,
                updated_at=now,
            )
        )
        session.commit()
        return result.rowcount == 1

    def reset(self, user_id: str) -> None:
        """Clear the counter after an accepted attempt."""
        with self._locks.hold(user_id), Session(self.engine) as session:
            row = session.get(RateLimitCounterModel, user_id)
            if row is not None:
                session.delete(row)
                session.commit()
