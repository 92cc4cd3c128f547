"""Persistence layer exceptions.

All persistence exceptions inherit from PersistenceError. The dispatch
pipeline treats a PersistenceError from the selection query as fatal for the
run, and one from a point lookup (hall, venue, identifier sub-record) as an
absent record.
"""


class PersistenceError(Exception):
    """Base exception for all persistence layer errors."""

    pass


class DatabaseConnectionError(PersistenceError):
    """Raised when database connection or initialization fails.

    Examples:
    - Invalid database URL format
    - Database file not accessible
    - get_session() called before init_database()
    """

    pass


class DataIntegrityError(PersistenceError):
    """Raised when a write violates a database constraint.

    Examples:
    - Duplicate EID or HTNO across two people
    - Primary key violation on seeding
    """

    pass
