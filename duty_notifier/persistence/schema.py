"""Database schema definition and ORM models.

Table and column names follow the scheduling system's schema (invigilation,
halls, venues, users, staff_details, student_details). The person-key set of
an assignment is kept in the invigilation_people association table with an
explicit position so the assigned order survives a round trip.
"""

import logging
from datetime import date, datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    Column,
    ForeignKey,
    Index,
    Integer,
    String,
    inspect,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, relationship

from duty_notifier.domain.models import (
    DutyAssignment,
    Hall,
    Person,
    PersonRole,
    StaffIdentity,
    StudentIdentity,
    Venue,
)
from duty_notifier.utils.timestamps import format_timestamp, parse_iso_datetime

logger = logging.getLogger(__name__)

Base = declarative_base()


class InvigilationModel(Base):
    """ORM model for the invigilation table (one row per duty assignment)."""

    __tablename__ = "invigilation"

    invigilation_id = Column(String(64), primary_key=True, nullable=False)

    # Dates as YYYY-MM-DD, instants as ISO 8601 strings
    date = Column(String(10), nullable=False)
    start_time = Column(String(50), nullable=True)
    end_time = Column(String(50), nullable=True)

    hall_id = Column(String(64), nullable=True)
    venue_id = Column(String(64), nullable=True)

    # Delivery-state flags
    mail_sent = Column(Boolean, nullable=False, default=False)
    force_resend = Column(Boolean, nullable=False, default=False)
    mail_sent_at = Column(String(50), nullable=True)

    people = relationship(
        "InvigilationPersonModel",
        order_by="InvigilationPersonModel.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_invigilation_date", "date"),
        Index("idx_invigilation_pending", "mail_sent", "force_resend"),
    )

    def to_domain(self) -> DutyAssignment:
        """Convert ORM model to domain model."""
        return DutyAssignment(
            assignment_id=self.invigilation_id,
            duty_date=date.fromisoformat(self.date),
            start_time=parse_iso_datetime(self.start_time, strict=True),
            end_time=parse_iso_datetime(self.end_time, strict=True),
            person_keys=[link.person_key for link in self.people],
            hall_id=self.hall_id,
            venue_id=self.venue_id,
            mail_sent=bool(self.mail_sent),
            force_resend=bool(self.force_resend),
            mail_sent_at=parse_iso_datetime(self.mail_sent_at, strict=True),
        )

    @classmethod
    def from_domain(cls, assignment: DutyAssignment) -> "InvigilationModel":
        """Create ORM model (with its people links) from domain model."""
        model = cls(
            invigilation_id=assignment.assignment_id,
            date=assignment.duty_date.isoformat(),
            start_time=_format_datetime(assignment.start_time),
            end_time=_format_datetime(assignment.end_time),
            hall_id=assignment.hall_id,
            venue_id=assignment.venue_id,
            mail_sent=assignment.mail_sent,
            force_resend=assignment.force_resend,
            mail_sent_at=_format_datetime(assignment.mail_sent_at),
        )
        model.people = [
            InvigilationPersonModel(person_key=key, position=position)
            for position, key in enumerate(assignment.person_keys)
        ]
        return model


class InvigilationPersonModel(Base):
    """ORM model for the person-key set of an assignment."""

    __tablename__ = "invigilation_people"

    invigilation_id = Column(
        String(64),
        ForeignKey("invigilation.invigilation_id", ondelete="CASCADE"),
        primary_key=True,
        nullable=False,
    )
    person_key = Column(String(64), primary_key=True, nullable=False)
    position = Column(Integer, nullable=False, default=0)

    __table_args__ = (Index("idx_invigilation_people_person", "person_key"),)


class HallModel(Base):
    """ORM model for the halls table."""

    __tablename__ = "halls"

    hall_id = Column(String(64), primary_key=True, nullable=False)
    hall_name = Column(String(255), nullable=True)
    floor = Column(String(50), nullable=True)

    def to_domain(self) -> Hall:
        return Hall(hall_id=self.hall_id, name=self.hall_name, floor=self.floor)

    @classmethod
    def from_domain(cls, hall: Hall) -> "HallModel":
        return cls(hall_id=hall.hall_id, hall_name=hall.name, floor=hall.floor)


class VenueModel(Base):
    """ORM model for the venues table."""

    __tablename__ = "venues"

    venue_id = Column(String(64), primary_key=True, nullable=False)
    venue_name = Column(String(255), nullable=True)

    def to_domain(self) -> Venue:
        return Venue(venue_id=self.venue_id, name=self.venue_name)

    @classmethod
    def from_domain(cls, venue: Venue) -> "VenueModel":
        return cls(venue_id=venue.venue_id, venue_name=venue.name)


class UserModel(Base):
    """ORM model for the users table (base identity records, keyed by QID)."""

    __tablename__ = "users"

    qid = Column(String(64), primary_key=True, nullable=False)
    name = Column(String(255), nullable=True)
    mail_id = Column(String(320), nullable=True)
    type = Column(String(20), nullable=True)

    def to_domain(self) -> Person:
        """Convert to a Person carrying the generic QID identifier."""
        return Person(
            person_key=self.qid,
            name=self.name,
            contact_address=self.mail_id,
            role=PersonRole.from_raw(self.type),
        )

    @classmethod
    def from_domain(cls, person: Person) -> "UserModel":
        return cls(
            qid=person.person_key,
            name=person.name,
            mail_id=person.contact_address,
            type=person.role.value,
        )


class StaffDetailModel(Base):
    """ORM model for the staff_details table (EID per QID)."""

    __tablename__ = "staff_details"

    qid = Column(String(64), primary_key=True, nullable=False)
    eid = Column(String(64), nullable=True, unique=True)

    def to_domain(self) -> StaffIdentity:
        return StaffIdentity(person_key=self.qid, eid=self.eid)


class StudentDetailModel(Base):
    """ORM model for the student_details table (HTNO per QID)."""

    __tablename__ = "student_details"

    qid = Column(String(64), primary_key=True, nullable=False)
    htno = Column(String(64), nullable=True, unique=True)

    def to_domain(self) -> StudentIdentity:
        return StudentIdentity(person_key=self.qid, htno=self.htno)


def _format_datetime(dt: Optional[datetime]) -> Optional[str]:
    """ISO 8601 UTC string for storage; None stays NULL."""
    if dt is None:
        return None
    return format_timestamp(dt, include_microseconds=True)


def create_schema(engine: Engine) -> None:
    """Create all tables and indexes if they don't exist (idempotent).

    Args:
        engine: SQLAlchemy engine instance
    """
    logger.info("Creating database schema if not exists")

    try:
        Base.metadata.create_all(engine, checkfirst=True)
        tables = inspect(engine).get_table_names()
        logger.info(f"Database schema ready. Tables: {', '.join(tables)}")
    except Exception as e:
        logger.error(f"Failed to create database schema: {e}", exc_info=True)
        raise
