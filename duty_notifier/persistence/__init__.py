"""Persistence layer for the duty store.

Public API:
    # Database initialization and session management
    - init_database(database_url: str, create_tables: bool = True) -> None
    - get_session() -> ContextManager[Session]
    - close_database() -> None
    - get_engine() -> Engine

    # Repository classes
    - AssignmentRepository: duty selection and delivery-state flag updates
    - ReferenceRepository: hall and venue lookups
    - DirectoryRepository: people, EID and HTNO records

    # Exceptions
    - PersistenceError: Base exception for all persistence errors
    - DatabaseConnectionError: Database connection/initialization failures
    - DataIntegrityError: Constraint violations

Example usage:
    >>> from datetime import date
    >>> from duty_notifier.persistence import init_database, get_session, AssignmentRepository
    >>>
    >>> init_database("sqlite:///./data/duty_notifier.db")
    >>>
    >>> with get_session() as session:
    ...     repo = AssignmentRepository(session)
    ...     pending = repo.find_pending(date(2025, 10, 1), date(2025, 10, 5))
"""

from .database import close_database, get_engine, get_session, init_database
from .exceptions import (
    DatabaseConnectionError,
    DataIntegrityError,
    PersistenceError,
)
from .repositories import AssignmentRepository, DirectoryRepository, ReferenceRepository

__all__ = [
    # Database functions
    "init_database",
    "get_session",
    "close_database",
    "get_engine",
    # Repositories
    "AssignmentRepository",
    "ReferenceRepository",
    "DirectoryRepository",
    # Exceptions
    "PersistenceError",
    "DatabaseConnectionError",
    "DataIntegrityError",
]
