from typing import Optional


class StudyCoreError(Exception):
    """Base exception for studycore."""

    pass


class DatabaseError(StudyCoreError):
    """Base exception for database-related errors."""

    def __init__(
        self, message: str, original_exception: Optional[Exception] = None
    ):
        super().__init__(message)
        self.original_exception = original_exception


class DatabaseConnectionError(DatabaseError):
    """Raised for errors connecting to the database."""

    pass


class SchemaInitializationError(DatabaseError):
    """Raised for errors during schema setup."""

    pass


class CardOperationError(DatabaseError):
    """Raised for errors during card operations (CRUD)."""

    pass


class ReviewOperationError(DatabaseError):
    """Indicates an error during a review-related database operation."""

    pass


class MarshallingError(DatabaseError):
    """Indicates an error during data conversion between application models
    and DB format."""

    pass


class SessionStateError(StudyCoreError):
    """Raised when a completed study session is asked to change its counters."""

    pass


class InvariantViolationError(StudyCoreError):
    """Raised in strict mode when an update would break a session invariant,
    e.g. more correct answers than cards studied."""

    pass
