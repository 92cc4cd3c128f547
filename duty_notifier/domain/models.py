"""Core domain models for invigilation duties and the people assigned to them.

This module defines the data structures read from the store:
- DutyAssignment: one scheduled invigilation duty and its delivery-state flags
- Person: a resolved invigilator with contact address and display identifier
- StaffIdentity / StudentIdentity: role-specific identifier sub-records
- Hall / Venue: reference data used when rendering duty rows
- DutyRecord / RecipientBundle: display rows grouped per recipient for one run
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, field_validator, model_validator

# Generic identifier label used when no role-specific identifier exists
DEFAULT_ID_LABEL = "QID"
STAFF_ID_LABEL = "EID"
STUDENT_ID_LABEL = "HTNO"


def _to_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is None:
        return None
    if v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v.astimezone(timezone.utc)


class PersonRole(str, Enum):
    """Closed set of roles a person can hold."""

    STAFF = "Staff"
    STUDENT = "Student"
    OTHER = "Other"

    @classmethod
    def from_raw(cls, value: Optional[str]) -> "PersonRole":
        """Map a stored role string onto a role, defaulting to OTHER.

        Matching is case-insensitive so "staff" and "STAFF" both map to STAFF.
        """
        if value:
            cleaned = value.strip().lower()
            for role in cls:
                if role.value.lower() == cleaned:
                    return role
        return cls.OTHER


class DutyAssignment(BaseModel):
    """One scheduled invigilation duty.

    Created by the scheduling system. The notifier only mutates the
    delivery-state flags (mail_sent, mail_sent_at, force_resend).
    """

    assignment_id: str = Field(..., min_length=1, description="Assignment identifier")
    duty_date: date = Field(..., description="Exam date")
    start_time: Optional[datetime] = Field(None, description="Duty start instant (UTC)")
    end_time: Optional[datetime] = Field(None, description="Duty end instant (UTC)")
    person_keys: Tuple[str, ...] = Field(
        default_factory=tuple, description="Person-keys of the assigned invigilators"
    )
    hall_id: Optional[str] = Field(None, description="Hall reference")
    venue_id: Optional[str] = Field(None, description="Venue reference")
    mail_sent: bool = Field(False, description="Notification already delivered")
    force_resend: bool = Field(False, description="Operator requested re-delivery")
    mail_sent_at: Optional[datetime] = Field(None, description="Last delivery time (UTC)")

    @field_validator("person_keys", mode="before")
    @classmethod
    def dedupe_person_keys(cls, v) -> Tuple[str, ...]:
        """Strip person-keys and drop blanks and repeats, keeping first-seen order."""
        if v is None:
            return ()
        seen = []
        for key in v:
            cleaned = str(key).strip()
            if cleaned and cleaned not in seen:
                seen.append(cleaned)
        return tuple(seen)

    @field_validator("start_time", "end_time", "mail_sent_at")
    @classmethod
    def ensure_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        """Ensure datetime is timezone-aware and in UTC."""
        return _to_utc(v)

    model_config = {"json_schema_extra": {"example": {
        "assignment_id": "INV-101",
        "duty_date": "2025-10-01",
        "start_time": "2025-10-01T04:30:00Z",
        "end_time": "2025-10-01T06:00:00Z",
        "person_keys": ["Q1", "Q2"],
        "hall_id": "H-12",
        "venue_id": "V-1",
        "mail_sent": False,
        "force_resend": False,
        "mail_sent_at": None,
    }}}


class Person(BaseModel):
    """A resolved invigilator.

    Immutable for the duration of a pipeline run. id_label/id_value carry the
    identifier shown in the salutation: EID for staff, HTNO for students,
    or the person-key itself under the generic QID label.
    """

    person_key: str = Field(..., min_length=1, description="Stable person identity")
    name: str = Field("", description="Display name")
    contact_address: Optional[str] = Field(None, description="Mail address")
    role: PersonRole = Field(PersonRole.OTHER, description="Role of the person")
    id_label: str = Field(DEFAULT_ID_LABEL, description="External identifier label")
    id_value: str = Field(..., description="External identifier value")

    @field_validator("contact_address")
    @classmethod
    def blank_contact_is_missing(cls, v: Optional[str]) -> Optional[str]:
        """Treat whitespace-only contact addresses as absent."""
        if v is None:
            return None
        stripped = v.strip()
        return stripped or None

    @field_validator("name", mode="before")
    @classmethod
    def name_or_blank(cls, v: Optional[str]) -> str:
        return (v or "").strip()

    @model_validator(mode="before")
    @classmethod
    def default_id_value(cls, data):
        """Fall back to the person-key when no identifier value is given."""
        if isinstance(data, dict) and data.get("id_value") is None:
            data = {**data, "id_value": data.get("person_key")}
        return data

    @property
    def has_contact(self) -> bool:
        return self.contact_address is not None

    model_config = {"frozen": True}


class StaffIdentity(BaseModel):
    """Staff identifier sub-record (EID)."""

    person_key: str
    eid: Optional[str] = None


class StudentIdentity(BaseModel):
    """Student identifier sub-record (HTNO, hall ticket number)."""

    person_key: str
    htno: Optional[str] = None


class Hall(BaseModel):
    """Exam hall reference data."""

    hall_id: str
    name: Optional[str] = None
    floor: Optional[str] = None

    @field_validator("floor", mode="before")
    @classmethod
    def floor_as_text(cls, v) -> Optional[str]:
        """Floors may be stored as numbers; keep them as display text."""
        if v is None:
            return None
        return str(v)


class Venue(BaseModel):
    """Exam venue (building / campus block) reference data."""

    venue_id: str
    name: Optional[str] = None


class DutyRecord(BaseModel):
    """One row of a duty table, already formatted for display.

    Blank strings stand in for reference data that could not be resolved.
    Records are built per run and never persisted.
    """

    model_config = {"frozen": True}

    date: str
    time_range: str
    venue: str = ""
    hall: str = ""
    floor: str = ""


class RecipientBundle(BaseModel):
    """All duty records of one person within one run, in processing order."""

    person: Person
    records: List[DutyRecord] = Field(default_factory=list)

    @property
    def person_key(self) -> str:
        return self.person.person_key
