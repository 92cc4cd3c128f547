"""Identity resolution for invigilators.

Turns a person-key into a Person carrying a mail address and the identifier
shown in the notice salutation (EID for staff, HTNO for students, QID
otherwise). Results are memoized for the lifetime of one pipeline run, so a
person named in many assignments costs one round of store lookups.
"""

from typing import Optional, Tuple

from duty_notifier.domain.models import (
    DEFAULT_ID_LABEL,
    STAFF_ID_LABEL,
    STUDENT_ID_LABEL,
    Person,
    PersonRole,
)
from duty_notifier.logging import get_logger
from duty_notifier.persistence.exceptions import PersistenceError
from duty_notifier.persistence.repositories import DirectoryRepository

from .cache import RunCache

logger = get_logger(__name__, component="identity")


class IdentityResolver:
    """Resolves person-keys to Persons, once per key per run.

    Create a new resolver for every run; the cache it owns is discarded with
    it.
    """

    def __init__(self, directory: DirectoryRepository):
        """Initialize resolver.

        Args:
            directory: Directory repository bound to the run's session
        """
        self.directory = directory
        self._cache: RunCache[str, Optional[Person]] = RunCache()

    @property
    def lookup_count(self) -> int:
        """Number of person-keys resolved against the store so far."""
        return self._cache.load_count

    def resolve(self, person_key: str) -> Optional[Person]:
        """Resolve a person-key.

        Args:
            person_key: Stable person identity (QID)

        Returns:
            Person with a contact address, or None when the person is unknown,
            has no contact address or cannot be looked up (unresolvable)
        """
        return self._cache.get_or_load(person_key, self._load)

    def _load(self, person_key: str) -> Optional[Person]:
        try:
            person = self.directory.get_person(person_key)
        except PersistenceError as e:
            logger.error(
                f"Identity lookup failed for QID: {person_key}: {e}",
                extra={"event": "identity.unresolvable", "person_key": person_key, "reason": "lookup_failed"},
            )
            return None

        if person is None:
            logger.error(
                f"No identity record for QID: {person_key}",
                extra={"event": "identity.unresolvable", "person_key": person_key, "reason": "unknown_person"},
            )
            return None

        if not person.has_contact:
            logger.error(
                f"Mail missing for QID: {person_key}",
                extra={"event": "identity.unresolvable", "person_key": person_key, "reason": "missing_contact"},
            )
            return None

        id_label, id_value = self._external_identifier(person)
        if id_label != person.id_label:
            person = person.model_copy(update={"id_label": id_label, "id_value": id_value})

        logger.debug(
            f"Resolved {person_key} as {person.role.value} ({id_label}: {id_value})",
            extra={"event": "identity.resolved", "person_key": person_key, "id_label": id_label},
        )
        return person

    def _external_identifier(self, person: Person) -> Tuple[str, str]:
        """Pick the role-specific identifier, falling back to the person-key.

        Sub-record lookup failures are treated as a missing sub-record.
        """
        try:
            if person.role is PersonRole.STAFF:
                staff = self.directory.get_staff_identity(person.person_key)
                if staff is not None and staff.eid:
                    return STAFF_ID_LABEL, staff.eid
            elif person.role is PersonRole.STUDENT:
                student = self.directory.get_student_identity(person.person_key)
                if student is not None and student.htno:
                    return STUDENT_ID_LABEL, student.htno
        except PersistenceError as e:
            logger.warning(
                f"Identifier lookup failed for {person.person_key}, using {DEFAULT_ID_LABEL}: {e}",
                extra={"event": "identity.sub_record.failed", "person_key": person.person_key},
            )

        return DEFAULT_ID_LABEL, person.person_key

    def find_by_external_id(self, id_value: str) -> Optional[Tuple[str, str]]:
        """Resolve an EID or HTNO to a person-key.

        The staff EID is tried first, then the student HTNO. Lookup failures
        count as no match.

        Args:
            id_value: Identifier typed by the operator

        Returns:
            (person_key, id_label) or None when neither identifier matches
        """
        lookups = (
            (STAFF_ID_LABEL, self.directory.find_person_key_by_eid),
            (STUDENT_ID_LABEL, self.directory.find_person_key_by_htno),
        )
        for label, lookup in lookups:
            try:
                person_key = lookup(id_value)
            except PersistenceError as e:
                logger.warning(
                    f"{label} lookup failed for {id_value}: {e}",
                    extra={"event": "identity.external_lookup.failed", "id_label": label},
                )
                continue
            if person_key:
                return person_key, label

        return None
