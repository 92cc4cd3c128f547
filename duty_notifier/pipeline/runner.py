"""Pipeline orchestration for invigilation duty notifications."""

import threading
from datetime import date, timedelta
from typing import Optional, Tuple, Union
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from duty_notifier.config.environment import EnvironmentConfig
from duty_notifier.config.models import AppConfig
from duty_notifier.domain.models import RecipientBundle
from duty_notifier.logging import get_logger
from duty_notifier.logging.context import log_context
from duty_notifier.notifications.models import NotificationResult
from duty_notifier.notifications.service import NotificationService
from duty_notifier.persistence.database import get_session
from duty_notifier.persistence.exceptions import PersistenceError
from duty_notifier.persistence.repositories import (
    AssignmentRepository,
    DirectoryRepository,
    ReferenceRepository,
)
from duty_notifier.resolution import IdentityResolver, ReferenceResolver
from duty_notifier.utils.timestamps import parse_date, resolve_timezone, utc_now

from .aggregator import DutyAggregator
from .models import BulkRunResult, SingleRunResult

logger = get_logger(__name__, component="pipeline")

DateInput = Union[str, date, None]


class InvalidRequestError(ValueError):
    """Raised for missing or malformed trigger input, before any lookup."""

    pass


def validate_date_window(from_date: DateInput, to_date: DateInput) -> Tuple[date, date]:
    """Parse and check a duty window.

    Args:
        from_date: First day ("YYYY-MM-DD" or date)
        to_date: Last day, inclusive

    Returns:
        (from_date, to_date) as dates

    Raises:
        InvalidRequestError: If a bound is missing or malformed, or from > to
    """
    try:
        start = parse_date(from_date)
        end = parse_date(to_date)
    except (ValueError, TypeError) as e:
        raise InvalidRequestError(f"Dates must be in YYYY-MM-DD format: {e}") from e

    if start is None or end is None:
        raise InvalidRequestError("from_date and to_date are required")

    if start > end:
        raise InvalidRequestError(
            f"from_date {start.isoformat()} is after to_date {end.isoformat()}"
        )

    return start, end


class DispatchPipeline:
    """
    Orchestrates duty notification runs.

    A bulk run selects pending assignments, fans them out into one bundle
    per invigilator, sends one notice per bundle and then updates the
    delivery flags of the whole batch in one statement, only when every
    recipient was notified. A single-recipient run sends one notice for an
    EID or HTNO and never touches the flags.
    """

    def __init__(
        self,
        app_config: AppConfig,
        env_config: EnvironmentConfig,
        notification_service: NotificationService,
    ):
        """
        Initialize the dispatch pipeline.

        Args:
            app_config: Application configuration
            env_config: Environment configuration
            notification_service: Service for rendering and sending notices
        """
        self.app_config = app_config
        self.env_config = env_config
        self.notification_service = notification_service
        self.display_tz = resolve_timezone(app_config.notice.display_timezone)
        self._lock = threading.Lock()

    def _new_aggregator(self, session) -> DutyAggregator:
        # Resolvers carry the per-run caches; never reuse them across runs
        return DutyAggregator(
            IdentityResolver(DirectoryRepository(session)),
            ReferenceResolver(ReferenceRepository(session)),
            display_tz=self.display_tz,
        )

    def run_bulk(self, from_date: DateInput, to_date: DateInput) -> BulkRunResult:
        """
        Notify every invigilator with pending duties in [from_date, to_date].

        Steps:
        1. Select assignments that are unsent or flagged for resend
        2. Aggregate them into one bundle per resolvable person
        3. Send one notice per bundle, independently
        4. If nothing failed, mark all contributing assignments as sent

        Args:
            from_date: First day of the window
            to_date: Last day of the window, inclusive

        Returns:
            BulkRunResult describing the run

        Raises:
            InvalidRequestError: If the window is missing or malformed
        """
        start, end = validate_date_window(from_date, to_date)
        run_started_at = utc_now()
        run_id = uuid4().hex
        result = BulkRunResult(
            run_id=run_id,
            from_date=start,
            to_date=end,
            run_started_at=run_started_at,
        )

        if not self._lock.acquire(blocking=False):
            with log_context(run_id=run_id):
                logger.warning(
                    "Bulk run skipped: previous run still in progress",
                    extra={"event": "bulk.run.skipped", "reason": "lock_held"},
                )
            result.skipped = True
            result.run_finished_at = utc_now()
            return result

        try:
            with log_context(run_id=run_id, from_date=start.isoformat(), to_date=end.isoformat()):
                logger.info(
                    f"Bulk run started for {start.isoformat()} to {end.isoformat()}",
                    extra={"event": "bulk.run.started"},
                )
                self._execute_bulk(result)
                result.run_finished_at = utc_now()

                logger.info(
                    "Bulk run completed",
                    extra={
                        "event": "bulk.run.completed",
                        "duration_ms": int(result.duration_seconds * 1000),
                        "selected_count": result.selected_count,
                        "contributing_count": len(result.contributing_ids),
                        "sent_count": result.sent_count,
                        "failed_count": result.failed_count,
                        "flags_committed": result.flags_committed,
                        "aborted": result.aborted,
                    },
                )
                return result
        finally:
            self._lock.release()

    def _execute_bulk(self, result: BulkRunResult) -> None:
        # Selection
        try:
            with get_session() as session:
                assignments = AssignmentRepository(session).find_pending(result.from_date, result.to_date)
        except (PersistenceError, SQLAlchemyError) as e:
            result.aborted = True
            result.error = str(e)
            logger.error(
                f"Bulk mail error: {e}",
                extra={"event": "bulk.selection.failed", "error_type": type(e).__name__},
            )
            return

        result.selected_count = len(assignments)
        if not assignments:
            logger.info("No invigilation records found", extra={"event": "bulk.selection.empty"})
            return

        logger.info(
            f"Selected {len(assignments)} pending assignments",
            extra={"event": "bulk.selection.complete", "selected_count": len(assignments)},
        )

        # Aggregation and dispatch
        try:
            with get_session() as session:
                aggregation = self._new_aggregator(session).aggregate(assignments)
        except (PersistenceError, SQLAlchemyError) as e:
            result.aborted = True
            result.error = str(e)
            logger.error(
                f"Bulk mail error: {e}",
                extra={"event": "bulk.aggregation.failed", "error_type": type(e).__name__},
            )
            return

        result.contributing_ids = list(aggregation.contributing_ids)
        result.outcomes.extend(
            NotificationResult(
                person_key=person_key,
                recipient=None,
                status="unresolvable",
                error="No contact address",
            )
            for person_key in aggregation.unresolvable
        )
        result.outcomes.extend(
            self.notification_service.send_bundles(aggregation.bundles.values(), mode="bulk")
        )

        # Reconciliation
        if result.any_failure:
            logger.warning(
                f"Some mails failed ({result.failed_count}). Flags NOT updated.",
                extra={"event": "bulk.flags.skipped", "reason": "failures", "failed_count": result.failed_count},
            )
            return

        if not result.contributing_ids:
            logger.warning(
                "No assignment produced a notice. Flags NOT updated.",
                extra={"event": "bulk.flags.skipped", "reason": "no_contributing_assignments"},
            )
            return

        try:
            with get_session() as session:
                result.updated_count = AssignmentRepository(session).mark_sent(
                    result.contributing_ids, utc_now()
                )
            result.flags_committed = True
            logger.info(
                f"Bulk mails completed & flags updated ({result.updated_count} assignments)",
                extra={"event": "bulk.flags.committed", "updated_count": result.updated_count},
            )
        except (PersistenceError, SQLAlchemyError) as e:
            result.error = str(e)
            logger.error(
                f"Failed to update delivery flags: {e}",
                extra={"event": "bulk.flags.failed", "error_type": type(e).__name__},
            )

    def run_upcoming(self, lookahead_days: Optional[int] = None) -> BulkRunResult:
        """Run the bulk trigger over [today, today + lookahead_days] in the display timezone."""
        days = self.app_config.schedule.lookahead_days if lookahead_days is None else lookahead_days
        today = utc_now().astimezone(self.display_tz).date()
        return self.run_bulk(today, today + timedelta(days=days))

    def run_for_identifier(
        self,
        id_value: Optional[str],
        from_date: DateInput,
        to_date: DateInput,
    ) -> SingleRunResult:
        """
        Send one notice to the person identified by an EID or HTNO.

        Flag filtering does not apply: every duty of the person in the window
        is listed, and the delivery flags are left untouched.

        Args:
            id_value: Staff EID or student HTNO
            from_date: First day of the window
            to_date: Last day of the window, inclusive

        Returns:
            SingleRunResult with status sent, not_found, no_contact,
            no_duties or failed

        Raises:
            InvalidRequestError: If the identifier or a date is missing or malformed
        """
        cleaned_id = (id_value or "").strip()
        if not cleaned_id:
            raise InvalidRequestError("id, from_date and to_date are required")
        start, end = validate_date_window(from_date, to_date)

        with log_context(run_id=uuid4().hex, id_value=cleaned_id):
            try:
                return self._execute_single(cleaned_id, start, end)
            except Exception as e:
                logger.error(
                    f"Individual mail error: {e}",
                    exc_info=True,
                    extra={"event": "single.run.failed", "error_type": type(e).__name__},
                )
                return SingleRunResult(
                    status="failed",
                    message="Failed to send individual mail",
                    error=str(e),
                )

    def _execute_single(self, id_value: str, start: date, end: date) -> SingleRunResult:
        with get_session() as session:
            aggregator = self._new_aggregator(session)
            identity = aggregator.identity_resolver

            match = identity.find_by_external_id(id_value)
            if match is None:
                logger.info("No staff or student matches identifier", extra={"event": "single.not_found"})
                return SingleRunResult(status="not_found", message="Invalid EID / HTNO")

            person_key, id_label = match
            with log_context(person_key=person_key):
                person = identity.resolve(person_key)
                if person is None:
                    return SingleRunResult(
                        status="no_contact",
                        message="Mail ID not found",
                        person_key=person_key,
                        id_label=id_label,
                    )

                assignments = AssignmentRepository(session).find_for_person(person_key, start, end)
                if not assignments:
                    logger.info("No invigilation duties found", extra={"event": "single.no_duties"})
                    return SingleRunResult(
                        status="no_duties",
                        message="No invigilation duties found",
                        person_key=person_key,
                        id_label=id_label,
                    )

                records = aggregator.build_records(assignments)

        # The notice shows the identifier the operator typed
        person = person.model_copy(update={"id_label": id_label, "id_value": id_value})
        bundle = RecipientBundle(person=person, records=records)

        with log_context(person_key=person_key):
            outcome = self.notification_service.send_bundle(bundle, mode="single")

        if outcome.is_success():
            return SingleRunResult(
                status="sent",
                message=f"Mail sent to {person.name or outcome.recipient}",
                person_key=person_key,
                id_label=id_label,
                duty_count=len(records),
            )

        return SingleRunResult(
            status="failed",
            message="Failed to send individual mail",
            person_key=person_key,
            id_label=id_label,
            duty_count=len(records),
            error=outcome.error,
        )
