"""Database exceptions."""


class DatabaseError(Exception):
    """Base exception for database operations."""

    pass


class TemplateConflictError(DatabaseError):
    """Raised when a concurrent writer activated a template first."""

    pass
