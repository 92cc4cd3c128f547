"""Fan-out of duty assignments into per-person bundles.

Every assignment names a set of people. The aggregator builds the duty row
for an assignment once, then appends it to the bundle of every person on it
whose identity resolves to a contact address. People who cannot be resolved
are recorded and skipped without stopping the run.
"""

from datetime import datetime, timezone, tzinfo
from typing import Dict, Iterable, List, Optional

from duty_notifier.domain.models import DutyAssignment, DutyRecord, RecipientBundle
from duty_notifier.logging import get_logger
from duty_notifier.logging.context import log_context
from duty_notifier.resolution import IdentityResolver, ReferenceResolver
from duty_notifier.utils.timestamps import format_clock_time

from .models import AggregationResult

logger = get_logger(__name__, component="aggregator")

TIME_RANGE_SEPARATOR = " – "


def format_time_range(
    start: Optional[datetime],
    end: Optional[datetime],
    tz: tzinfo = timezone.utc,
) -> str:
    """Render a duty's start and end as "9:30:00 AM – 12:30:00 PM".

    Missing instants render blank on their side of the separator.
    """
    return f"{format_clock_time(start, tz)}{TIME_RANGE_SEPARATOR}{format_clock_time(end, tz)}"


class DutyAggregator:
    """Builds duty rows and groups them by recipient.

    Resolvers are per-run objects; one aggregator is built per run around
    them.
    """

    def __init__(
        self,
        identity_resolver: IdentityResolver,
        reference_resolver: ReferenceResolver,
        display_tz: tzinfo = timezone.utc,
    ):
        self.identity_resolver = identity_resolver
        self.reference_resolver = reference_resolver
        self.display_tz = display_tz

    def build_record(self, assignment: DutyAssignment) -> DutyRecord:
        """Build the display row for one assignment.

        Unresolvable halls and venues leave their columns blank.
        """
        hall = self.reference_resolver.resolve_hall(assignment.hall_id)
        venue = self.reference_resolver.resolve_venue(assignment.venue_id)

        return DutyRecord(
            date=assignment.duty_date.isoformat(),
            time_range=format_time_range(assignment.start_time, assignment.end_time, self.display_tz),
            venue=(venue.name if venue and venue.name else ""),
            hall=(hall.name if hall and hall.name else ""),
            floor=(hall.floor if hall and hall.floor else ""),
        )

    def build_records(self, assignments: Iterable[DutyAssignment]) -> List[DutyRecord]:
        """Build rows for assignments without any identity fan-out."""
        return [self.build_record(assignment) for assignment in assignments]

    def aggregate(self, assignments: Iterable[DutyAssignment]) -> AggregationResult:
        """Fan assignments out into one bundle per resolvable person.

        Args:
            assignments: Assignments in processing order

        Returns:
            AggregationResult with bundles, contributing assignment ids and
            the distinct person-keys that could not be resolved
        """
        bundles: Dict[str, RecipientBundle] = {}
        contributing: List[str] = []
        unresolvable: List[str] = []
        seen_unresolvable = set()

        for assignment in assignments:
            with log_context(assignment_id=assignment.assignment_id):
                record = self.build_record(assignment)
                contributed = False

                for person_key in assignment.person_keys:
                    person = self.identity_resolver.resolve(person_key)
                    if person is None:
                        if person_key not in seen_unresolvable:
                            seen_unresolvable.add(person_key)
                            unresolvable.append(person_key)
                        continue

                    bundle = bundles.get(person_key)
                    if bundle is None:
                        bundle = RecipientBundle(person=person)
                        bundles[person_key] = bundle
                    bundle.records.append(record)
                    contributed = True

                if contributed:
                    contributing.append(assignment.assignment_id)
                else:
                    logger.warning(
                        f"Assignment {assignment.assignment_id} has no resolvable invigilators",
                        extra={"event": "aggregation.assignment.orphaned"},
                    )

        logger.info(
            f"Aggregated {len(contributing)} assignments into {len(bundles)} recipients "
            f"({len(unresolvable)} unresolvable)",
            extra={
                "event": "aggregation.complete",
                "recipient_count": len(bundles),
                "contributing_count": len(contributing),
                "unresolvable_count": len(unresolvable),
            },
        )

        return AggregationResult(
            bundles=bundles,
            contributing_ids=contributing,
            unresolvable=unresolvable,
        )
