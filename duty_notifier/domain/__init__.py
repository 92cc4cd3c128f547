"""Domain models for the invigilation duty notifier."""

from .models import (
    DEFAULT_ID_LABEL,
    STAFF_ID_LABEL,
    STUDENT_ID_LABEL,
    DutyAssignment,
    DutyRecord,
    Hall,
    Person,
    PersonRole,
    RecipientBundle,
    StaffIdentity,
    StudentIdentity,
    Venue,
)

__all__ = [
    "DutyAssignment",
    "DutyRecord",
    "Person",
    "PersonRole",
    "RecipientBundle",
    "StaffIdentity",
    "StudentIdentity",
    "Hall",
    "Venue",
    "DEFAULT_ID_LABEL",
    "STAFF_ID_LABEL",
    "STUDENT_ID_LABEL",
]
