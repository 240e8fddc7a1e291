"""Tests for SqlRateLimiter."""

import threading
from datetime import timedelta

import pytest

from voicefactor.database.locks import KeyedLock
from voicefactor.database.stores import SqlRateLimiter


class TestSqlRateLimiter:
    """Fixed-window lockout with three allowed failures per 15 minutes."""

    def test_initial_status(self, rate_limiter):
        """Unknown users are not locked."""
        status = rate_limiter.status("user-001")
        assert not status.locked
        assert status.failed_count == 0
        assert status.retry_after is None

    def test_counts_failures(self, rate_limiter):
        """Each failure increments the counter."""
        assert rate_limiter.record_failure("user-001").failed_count == 1
        assert rate_limiter.record_failure("user-001").failed_count == 2
        assert rate_limiter.status("user-001").failed_count == 2
        assert not rate_limiter.status("user-001").locked

    def test_locks_at_limit(self, rate_limiter, clock):
        """Reaching the limit locks until the window closes."""
        rate_limiter.record_failure("user-001")
        clock.advance(60)
        rate_limiter.record_failure("user-001")
        clock.advance(60)
        status = rate_limiter.record_failure("user-001")

        assert status.locked
        assert status.failed_count == 3
        assert status.retry_after == timedelta(minutes=13)

    def test_status_does_not_modify(self, rate_limiter):
        """Reading the status never counts as a failure."""
        rate_limiter.record_failure("user-001")
        for _ in range(5):
            rate_limiter.status("user-001")
        assert rate_limiter.status("user-001").failed_count == 1

    def test_window_expiry(self, rate_limiter, clock):
        """After the window the lock lifts and counting restarts."""
        for _ in range(3):
            rate_limiter.record_failure("user-001")
        assert rate_limiter.status("user-001").locked

        clock.advance(15 * 60)
        assert not rate_limiter.status("user-001").locked

        status = rate_limiter.record_failure("user-001")
        assert status.failed_count == 1
        assert not status.locked

    def test_retry_after_shrinks(self, rate_limiter, clock):
        """retry_after counts down as time passes."""
        for _ in range(3):
            rate_limiter.record_failure("user-001")
        clock.advance(5 * 60)
        assert rate_limiter.status("user-001").retry_after == timedelta(minutes=10)

    def test_reset(self, rate_limiter):
        """An accepted attempt clears the counter."""
        rate_limiter.record_failure("user-001")
        rate_limiter.record_failure("user-001")
        rate_limiter.reset("user-001")
        assert rate_limiter.status("user-001").failed_count == 0

    def test_reset_unknown_user(self, rate_limiter):
        """Resetting a user without failures is a no-op."""
        rate_limiter.reset("nobody")
        assert rate_limiter.status("nobody").failed_count == 0

    def test_users_independent(self, rate_limiter):
        for _ in range(3):
            rate_limiter.record_failure("user-001")
        assert rate_limiter.status("user-001").locked
        assert not rate_limiter.status("user-002").locked

    @pytest.mark.parametrize("failures", [4, 6])
    def test_failures_while_locked_keep_counting(self, rate_limiter, failures):
        """Further failures inside the window do not extend it."""
        for _ in range(failures):
            status = rate_limiter.record_failure("user-001")
        assert status.locked
        assert status.failed_count == failures
        assert status.retry_after == timedelta(minutes=15)


class TestBeginAttempt:
    """Admission of verification attempts."""

    def test_admits_and_counts(self, rate_limiter):
        """An admitted attempt reports the prior status and is counted."""
        status = rate_limiter.begin_attempt("user-001")

        assert not status.locked
        assert status.failed_count == 0
        assert rate_limiter.status("user-001").failed_count == 1

    def test_last_slot_locks(self, rate_limiter):
        for _ in range(2):
            rate_limiter.record_failure("user-001")

        assert not rate_limiter.begin_attempt("user-001").locked
        assert rate_limiter.status("user-001").locked

    def test_refuses_when_locked(self, rate_limiter):
        """A refused attempt is not counted."""
        for _ in range(3):
            rate_limiter.record_failure("user-001")

        status = rate_limiter.begin_attempt("user-001")

        assert status.locked
        assert status.retry_after == timedelta(minutes=15)
        assert rate_limiter.status("user-001").failed_count == 3

    def test_reset_refunds(self, rate_limiter):
        """An accepted attempt clears its own count."""
        rate_limiter.begin_attempt("user-001")
        rate_limiter.reset("user-001")
        assert rate_limiter.status("user-001").failed_count == 0

    def test_expired_window_restarts(self, rate_limiter, clock):
        for _ in range(3):
            rate_limiter.begin_attempt("user-001")
        assert rate_limiter.begin_attempt("user-001").locked

        clock.advance(15 * 60)

        assert not rate_limiter.begin_attempt("user-001").locked
        assert rate_limiter.status("user-001").failed_count == 1


class TestConcurrency:
    """Parallel callers on a file database."""

    @staticmethod
    def run_parallel(target, count: int) -> list[Exception]:
        errors: list[Exception] = []

        def run() -> None:
            try:
                target()
            except Exception as e:
                errors.append(e)

        threads = [threading.Thread(target=run) for _ in range(count)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        return errors

    def test_parallel_failures_all_counted(self, file_engine):
        """Concurrent failures are never lost."""
        limiter = SqlRateLimiter(
            file_engine, max_failed_attempts=100, window=timedelta(minutes=15)
        )

        errors = self.run_parallel(lambda: limiter.record_failure("user-001"), 10)

        assert errors == []
        assert limiter.status("user-001").failed_count == 10

    def test_parallel_admissions_capped(self, file_engine):
        """No more attempts are admitted than the limit allows."""
        limiter = SqlRateLimiter(
            file_engine, max_failed_attempts=3, window=timedelta(minutes=15)
        )
        admitted: list[bool] = []

        errors = self.run_parallel(
            lambda: admitted.append(not limiter.begin_attempt("user-001").locked), 8
        )

        assert errors == []
        assert admitted.count(True) == 3
        status = limiter.status("user-001")
        assert status.failed_count == 3
        assert status.locked

    def test_admissions_capped_across_instances(self, file_engine):
        """Limiters that do not share locks are still capped by the database."""
        limiters = [
            SqlRateLimiter(
                file_engine,
                max_failed_attempts=3,
                window=timedelta(minutes=15),
                locks=KeyedLock(),
            )
            for _ in range(2)
        ]
        limiters[0].record_failure("user-001")
        admitted: list[bool] = []
        turn = iter(limiters * 4)
        turn_lock = threading.Lock()

        def begin() -> None:
            with turn_lock:
                limiter = next(turn)
            admitted.append(not limiter.begin_attempt("user-001").locked)

        errors = self.run_parallel(begin, 8)

        assert errors == []
        assert admitted.count(True) == 2
        assert limiters[1].status("user-001").failed_count == 3
