"""Data access layer (repositories) for persistence operations.

Repositories wrap a SQLAlchemy session and return domain models:
- AssignmentRepository: duty selection and delivery-state flag updates
- ReferenceRepository: hall and venue lookups
- DirectoryRepository: people and their role-specific identifiers
"""

import logging
from datetime import date, datetime
from typing import Iterable, List, Optional

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from duty_notifier.domain.models import (
    DutyAssignment,
    Hall,
    Person,
    StaffIdentity,
    StudentIdentity,
    Venue,
)

from .exceptions import DataIntegrityError, PersistenceError
from .schema import (
    HallModel,
    InvigilationModel,
    InvigilationPersonModel,
    StaffDetailModel,
    StudentDetailModel,
    UserModel,
    VenueModel,
    _format_datetime,
)

logger = logging.getLogger(__name__)


def _assignment_from_row(model: InvigilationModel) -> DutyAssignment:
    """Convert a stored row, reporting malformed dates or times as a store failure."""
    try:
        return model.to_domain()
    except ValueError as e:
        logger.error(f"Malformed invigilation row {model.invigilation_id}: {e}")
        raise PersistenceError(f"Malformed invigilation row {model.invigilation_id}: {e}") from e


class AssignmentRepository:
    """Repository for duty assignments and their delivery-state flags."""

    def __init__(self, session: Session):
        """Initialize repository with database session.

        Args:
            session: SQLAlchemy session for database operations
        """
        self.session = session

    def find_pending(self, from_date: date, to_date: date) -> List[DutyAssignment]:
        """Select assignments eligible for a bulk notification run.

        An assignment is eligible when its date lies in [from_date, to_date]
        (inclusive) and it has not been mailed yet or a resend was forced.

        Args:
            from_date: First day of the window
            to_date: Last day of the window

        Returns:
            Eligible assignments ordered by date, start time and identifier

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(InvigilationModel)
                .where(
                    InvigilationModel.date >= from_date.isoformat(),
                    InvigilationModel.date <= to_date.isoformat(),
                    or_(
                        InvigilationModel.mail_sent.is_(False),
                        InvigilationModel.force_resend.is_(True),
                    ),
                )
                .order_by(
                    InvigilationModel.date,
                    InvigilationModel.start_time,
                    InvigilationModel.invigilation_id,
                )
            )
            models = self.session.execute(stmt).scalars().all()
            return [_assignment_from_row(model) for model in models]

        except SQLAlchemyError as e:
            logger.error(
                f"Error selecting pending assignments {from_date}..{to_date}: {e}",
                exc_info=True,
            )
            raise PersistenceError(f"Failed to select pending assignments: {e}") from e

    def find_for_person(
        self, person_key: str, from_date: date, to_date: date
    ) -> List[DutyAssignment]:
        """Select every assignment in the window whose people include person_key.

        Delivery-state flags are ignored.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            stmt = (
                select(InvigilationModel)
                .where(
                    InvigilationModel.date >= from_date.isoformat(),
                    InvigilationModel.date <= to_date.isoformat(),
                    InvigilationModel.people.any(
                        InvigilationPersonModel.person_key == person_key
                    ),
                )
                .order_by(
                    InvigilationModel.date,
                    InvigilationModel.start_time,
                    InvigilationModel.invigilation_id,
                )
            )
            models = self.session.execute(stmt).scalars().all()
            return [_assignment_from_row(model) for model in models]

        except SQLAlchemyError as e:
            logger.error(
                f"Error selecting assignments for person {person_key}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to select assignments for person: {e}") from e

    def get_by_id(self, assignment_id: str) -> Optional[DutyAssignment]:
        """Retrieve an assignment by identifier, or None."""
        try:
            model = self.session.get(InvigilationModel, assignment_id)
            return _assignment_from_row(model) if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving assignment {assignment_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve assignment: {e}") from e

    def mark_sent(self, assignment_ids: Iterable[str], sent_at: datetime) -> int:
        """Mark assignments as delivered in a single UPDATE statement.

        Sets mail_sent=True, mail_sent_at=sent_at and force_resend=False for
        every identifier at once; there is no per-assignment update path.

        Args:
            assignment_ids: Identifiers of the contributing assignments
            sent_at: Delivery timestamp (UTC)

        Returns:
            Number of rows updated

        Raises:
            PersistenceError: If database error occurs
        """
        ids = list(dict.fromkeys(assignment_ids))
        if not ids:
            return 0

        try:
            stmt = (
                update(InvigilationModel)
                .where(InvigilationModel.invigilation_id.in_(ids))
                .values(
                    mail_sent=True,
                    mail_sent_at=_format_datetime(sent_at),
                    force_resend=False,
                )
                .execution_options(synchronize_session=False)
            )
            result = self.session.execute(stmt)
            self.session.flush()
            return result.rowcount

        except SQLAlchemyError as e:
            logger.error(f"Error updating delivery flags for {len(ids)} assignments: {e}", exc_info=True)
            raise PersistenceError(f"Failed to update delivery flags: {e}") from e

    def upsert(self, assignment: DutyAssignment) -> DutyAssignment:
        """Insert or replace an assignment (used for seeding and imports).

        Raises:
            DataIntegrityError: On constraint violation
            PersistenceError: If database error occurs
        """
        try:
            existing = self.session.get(InvigilationModel, assignment.assignment_id)
            if existing is not None:
                self.session.delete(existing)
                self.session.flush()

            model = InvigilationModel.from_domain(assignment)
            self.session.add(model)
            self.session.flush()
            return model.to_domain()

        except IntegrityError as e:
            logger.error(
                f"Integrity error upserting assignment {assignment.assignment_id}: {e}",
                exc_info=True,
            )
            raise DataIntegrityError(f"Failed to upsert assignment: {e}") from e
        except SQLAlchemyError as e:
            logger.error(
                f"Error upserting assignment {assignment.assignment_id}: {e}", exc_info=True
            )
            raise PersistenceError(f"Failed to upsert assignment: {e}") from e


class ReferenceRepository:
    """Repository for hall and venue reference data."""

    def __init__(self, session: Session):
        self.session = session

    def get_hall(self, hall_id: str) -> Optional[Hall]:
        """Retrieve a hall by identifier, or None.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(HallModel, hall_id)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving hall {hall_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve hall: {e}") from e

    def get_venue(self, venue_id: str) -> Optional[Venue]:
        """Retrieve a venue by identifier, or None.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(VenueModel, venue_id)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving venue {venue_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve venue: {e}") from e

    def upsert_hall(self, hall: Hall) -> Hall:
        try:
            model = self.session.merge(HallModel.from_domain(hall))
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting hall {hall.hall_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert hall: {e}") from e

    def upsert_venue(self, venue: Venue) -> Venue:
        try:
            model = self.session.merge(VenueModel.from_domain(venue))
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting venue {venue.venue_id}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert venue: {e}") from e


class DirectoryRepository:
    """Repository for people and their role-specific identifiers."""

    def __init__(self, session: Session):
        self.session = session

    def get_person(self, person_key: str) -> Optional[Person]:
        """Retrieve the base identity record (name, contact, role), or None.

        The returned Person carries the generic QID identifier; role-specific
        identifiers are attached by the identity resolver.

        Raises:
            PersistenceError: If database error occurs
        """
        try:
            model = self.session.get(UserModel, person_key)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving person {person_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve person: {e}") from e

    def get_staff_identity(self, person_key: str) -> Optional[StaffIdentity]:
        """Retrieve the staff sub-record (EID) for a person-key, or None."""
        try:
            model = self.session.get(StaffDetailModel, person_key)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving staff record {person_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve staff record: {e}") from e

    def get_student_identity(self, person_key: str) -> Optional[StudentIdentity]:
        """Retrieve the student sub-record (HTNO) for a person-key, or None."""
        try:
            model = self.session.get(StudentDetailModel, person_key)
            return model.to_domain() if model is not None else None
        except SQLAlchemyError as e:
            logger.error(f"Error retrieving student record {person_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to retrieve student record: {e}") from e

    def find_person_key_by_eid(self, eid: str) -> Optional[str]:
        """Resolve a staff EID to its person-key, or None."""
        try:
            stmt = select(StaffDetailModel.qid).where(StaffDetailModel.eid == eid)
            return self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error resolving EID {eid}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to resolve EID: {e}") from e

    def find_person_key_by_htno(self, htno: str) -> Optional[str]:
        """Resolve a student HTNO to its person-key, or None."""
        try:
            stmt = select(StudentDetailModel.qid).where(StudentDetailModel.htno == htno)
            return self.session.execute(stmt).scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Error resolving HTNO {htno}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to resolve HTNO: {e}") from e

    def upsert_person(self, person: Person) -> Person:
        try:
            model = self.session.merge(UserModel.from_domain(person))
            self.session.flush()
            return model.to_domain()
        except SQLAlchemyError as e:
            logger.error(f"Error upserting person {person.person_key}: {e}", exc_info=True)
            raise PersistenceError(f"Failed to upsert person: {e}") from e

    def upsert_staff_identity(self, identity: StaffIdentity) -> StaffIdentity:
        """Insert or update a staff EID record.

        Raises:
            DataIntegrityError: If the EID already belongs to another person
        """
        try:
            model = self.session.merge(StaffDetailModel(qid=identity.person_key, eid=identity.eid))
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Duplicate EID {identity.eid}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to upsert staff record: {e}") from e

    def upsert_student_identity(self, identity: StudentIdentity) -> StudentIdentity:
        """Insert or update a student HTNO record.

        Raises:
            DataIntegrityError: If the HTNO already belongs to another person
        """
        try:
            model = self.session.merge(
                StudentDetailModel(qid=identity.person_key, htno=identity.htno)
            )
            self.session.flush()
            return model.to_domain()
        except IntegrityError as e:
            raise DataIntegrityError(f"Duplicate HTNO {identity.htno}: {e}") from e
        except SQLAlchemyError as e:
            raise PersistenceError(f"Failed to upsert student record: {e}") from e
