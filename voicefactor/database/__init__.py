"""Database layer."""

from voicefactor.database.session import init_db
from voicefactor.database.stores import (
    SqlAttemptLog,
    SqlRateLimiter,
    SqlTemplateStore,
)

__all__ = [
    "SqlAttemptLog",
    "SqlRateLimiter",
    "SqlTemplateStore",
    "init_db",
]
