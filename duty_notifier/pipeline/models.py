"""Data models for duty aggregation and pipeline run reporting."""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Dict, List, Optional

from duty_notifier.domain.models import RecipientBundle
from duty_notifier.notifications.models import NotificationResult

BULK_ACK_MESSAGE = "Bulk mail process completed. Check logs."


@dataclass
class AggregationResult:
    """Output of fanning a set of assignments out into per-person bundles.

    Attributes:
        bundles: person_key -> bundle, in first-seen order
        contributing_ids: Assignments with at least one resolvable person,
            in processing order
        unresolvable: Person-keys that could not be resolved to a contact,
            each listed once
    """

    bundles: Dict[str, RecipientBundle] = field(default_factory=dict)
    contributing_ids: List[str] = field(default_factory=list)
    unresolvable: List[str] = field(default_factory=list)


@dataclass
class BulkRunResult:
    """
    Outcome of one bulk notification run.

    Attributes:
        run_id: Identifier shared by all log lines of the run
        from_date: First day of the window
        to_date: Last day of the window
        run_started_at: UTC timestamp when the run began
        run_finished_at: UTC timestamp when the run completed
        selected_count: Number of eligible assignments selected
        contributing_ids: Assignments that contributed at least one recipient
        outcomes: One NotificationResult per person (sent, failed or unresolvable)
        flags_committed: Whether the delivery-state flags were updated
        updated_count: Rows touched by the flag update
        aborted: Whether the selection query failed and the run stopped
        skipped: Whether the run was skipped because another run held the lock
        error: Error message for aborted runs
    """

    run_id: str
    from_date: date
    to_date: date
    run_started_at: datetime
    run_finished_at: Optional[datetime] = None
    selected_count: int = 0
    contributing_ids: List[str] = field(default_factory=list)
    outcomes: List[NotificationResult] = field(default_factory=list)
    flags_committed: bool = False
    updated_count: int = 0
    aborted: bool = False
    skipped: bool = False
    error: Optional[str] = None

    @property
    def sent_count(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.is_success())

    @property
    def failed_count(self) -> int:
        return sum(1 for outcome in self.outcomes if not outcome.is_success())

    @property
    def any_failure(self) -> bool:
        return self.failed_count > 0

    @property
    def duration_seconds(self) -> float:
        if self.run_finished_at is None:
            return 0.0
        return (self.run_finished_at - self.run_started_at).total_seconds()

    @property
    def message(self) -> str:
        """Acknowledgement shown to the operator, whatever the outcome."""
        return BULK_ACK_MESSAGE


@dataclass
class SingleRunResult:
    """
    Outcome of a single-recipient notification request.

    Attributes:
        status: "sent", "not_found", "no_contact", "no_duties" or "failed"
        message: Operator-facing message
        person_key: Resolved person-key, when the identifier matched
        id_label: Label of the identifier that matched (EID or HTNO)
        duty_count: Number of duty rows in the notice
        error: Underlying error for failed sends
    """

    status: str
    message: str
    person_key: Optional[str] = None
    id_label: Optional[str] = None
    duty_count: int = 0
    error: Optional[str] = None

    def is_success(self) -> bool:
        return self.status == "sent"
