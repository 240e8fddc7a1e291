"""Rate limiting Protocol."""

from dataclasses import dataclass
from datetime import timedelta
from typing import Protocol


@dataclass(frozen=True)
class LockStatus:
    """Failed-attempt state of one user."""

    locked: bool
    failed_count: int
    retry_after: timedelta | None = None


class RateLimiterProtocol(Protocol):
    """Per-user failed attempt counter with lockout."""

    def status(self, user_id: str) -> LockStatus:
        """Current lock status without modifying the counter."""
        ...

    def begin_attempt(self, user_id: str) -> LockStatus:
        """Atomically check the lockout and count the attempt if admitted.

        The returned status is the one before this attempt; ``locked`` means
        the attempt was refused and not counted.
        """
        ...

    def record_failure(self, user_id: str) -> LockStatus:
        """Atomically count one rejected attempt."""
        ...

    def reset(self, user_id: str) -> None:
        """Clear the counter after an accepted attempt."""
        ...
