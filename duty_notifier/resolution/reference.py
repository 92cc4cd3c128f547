"""Hall and venue resolution for duty rows, memoized per run."""

from typing import Optional

from duty_notifier.domain.models import Hall, Venue
from duty_notifier.logging import get_logger
from duty_notifier.persistence.exceptions import PersistenceError
from duty_notifier.persistence.repositories import ReferenceRepository

from .cache import RunCache

logger = get_logger(__name__, component="reference")


class ReferenceResolver:
    """Looks up each hall and venue at most once per run.

    Missing references and failed lookups both resolve to None; the duty row
    then renders those columns blank.
    """

    def __init__(self, references: ReferenceRepository):
        self.references = references
        self._halls: RunCache[str, Optional[Hall]] = RunCache()
        self._venues: RunCache[str, Optional[Venue]] = RunCache()

    @property
    def lookup_count(self) -> int:
        """Number of hall and venue keys looked up in the store so far."""
        return self._halls.load_count + self._venues.load_count

    def resolve_hall(self, hall_id: Optional[str]) -> Optional[Hall]:
        if not hall_id:
            return None
        return self._halls.get_or_load(hall_id, self._load_hall)

    def resolve_venue(self, venue_id: Optional[str]) -> Optional[Venue]:
        if not venue_id:
            return None
        return self._venues.get_or_load(venue_id, self._load_venue)

    def _load_hall(self, hall_id: str) -> Optional[Hall]:
        try:
            hall = self.references.get_hall(hall_id)
        except PersistenceError as e:
            logger.warning(
                f"Hall lookup failed for {hall_id}: {e}",
                extra={"event": "reference.lookup.failed", "hall_id": hall_id},
            )
            return None

        if hall is None:
            logger.warning(
                f"Hall {hall_id} not found",
                extra={"event": "reference.missing", "hall_id": hall_id},
            )
        return hall

    def _load_venue(self, venue_id: str) -> Optional[Venue]:
        try:
            venue = self.references.get_venue(venue_id)
        except PersistenceError as e:
            logger.warning(
                f"Venue lookup failed for {venue_id}: {e}",
                extra={"event": "reference.lookup.failed", "venue_id": venue_id},
            )
            return None

        if venue is None:
            logger.warning(
                f"Venue {venue_id} not found",
                extra={"event": "reference.missing", "venue_id": venue_id},
            )
        return venue
