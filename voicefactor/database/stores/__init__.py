"""Database stores."""

from voicefactor.database.stores.attempt_log import SqlAttemptLog
from voicefactor.database.stores.rate_limiter import SqlRateLimiter
from voicefactor.database.stores.template_store import SqlTemplateStore

__all__ = ["SqlAttemptLog", "SqlRateLimiter", "SqlTemplateStore"]
