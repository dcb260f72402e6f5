"""Tax filing status state machine.

Statuses follow a real-world order (new -> documents_pending -> review ->
filed -> accepted -> approved -> paid), but staff may set any status from
any other, including the current one, to correct mistakes. Every
transition appends a history entry. Reaching a milestone status stamps
its milestone field, overwriting an earlier stamp on re-entry.
"""

from datetime import timezone
from typing import TYPE_CHECKING

import structlog
from statemachine import State, StateMachine
from statemachine.exceptions import TransitionNotAllowed

from src.models.base import utcnow
from src.models.filing import FilingStatus

if TYPE_CHECKING:
    from src.models.filing import TaxFiling

logger = structlog.get_logger()

MILESTONE_FIELDS: dict[FilingStatus, str] = {
    FilingStatus.REVIEW: "documents_received_at",
    FilingStatus.FILED: "submitted_at",
    FilingStatus.ACCEPTED: "accepted_at",
    FilingStatus.APPROVED: "approved_at",
    FilingStatus.PAID: "funded_at",
}


def history_entry(status: FilingStatus, note: str | None = None) -> dict[str, str]:
    """Build one status history entry stamped with the current UTC time."""
    entry = {
        "status": status.value,
        "date": utcnow().replace(tzinfo=timezone.utc).isoformat(),
    }
    if note:
        entry["note"] = note
    return entry


class FilingStateMachine(StateMachine):
    """State machine bound to a TaxFiling's ``status`` column.

    Each status has a ``to_<status>`` event accepted from every state.
    """

    new = State(initial=True, value=FilingStatus.NEW)
    documents_pending = State(value=FilingStatus.DOCUMENTS_PENDING)
    review = State(value=FilingStatus.REVIEW)
    filed = State(value=FilingStatus.FILED)
    accepted = State(value=FilingStatus.ACCEPTED)
    approved = State(value=FilingStatus.APPROVED)
    paid = State(value=FilingStatus.PAID)

    to_new = new.from_(new, documents_pending, review, filed, accepted, approved, paid)
    to_documents_pending = documents_pending.from_(
        new, documents_pending, review, filed, accepted, approved, paid
    )
    to_review = review.from_(new, documents_pending, review, filed, accepted, approved, paid)
    to_filed = filed.from_(new, documents_pending, review, filed, accepted, approved, paid)
    to_accepted = accepted.from_(
        new, documents_pending, review, filed, accepted, approved, paid
    )
    to_approved = approved.from_(
        new, documents_pending, review, filed, accepted, approved, paid
    )
    to_paid = paid.from_(new, documents_pending, review, filed, accepted, approved, paid)

    def __init__(self, filing: "TaxFiling") -> None:
        """Bind the machine to a persisted filing.

        Args:
            filing: TaxFiling whose ``status`` is already set.
        """
        self.filing = filing
        super().__init__(model=filing, state_field="status")

    @property
    def current_status(self) -> FilingStatus:
        """Current state as FilingStatus enum."""
        return FilingStatus(self.current_state.value)

    def set_status(self, status: FilingStatus, note: str | None = None) -> None:
        """Move to ``status`` through its event."""
        self.send(f"to_{status.value}", note=note)

    def after_transition(self, source: State, target: State, note: str | None = None) -> None:
        """Record the transition and stamp the milestone for the new status."""
        status = FilingStatus(target.value)
        entry = history_entry(status, note)

        # Reassign rather than append so the JSON column is flagged dirty.
        self.filing.status_history = [*(self.filing.status_history or []), entry]

        milestone = MILESTONE_FIELDS.get(status)
        if milestone is not None:
            setattr(self.filing, milestone, utcnow())

        logger.info(
            "tax_filing_status_changed",
            filing_id=self.filing.id,
            from_status=FilingStatus(source.value).value,
            to_status=status.value,
            milestone=milestone,
        )


def create_state_machine(filing: "TaxFiling") -> FilingStateMachine:
    """Factory function to create a state machine for a filing.

    Args:
        filing: TaxFiling model instance

    Returns:
        FilingStateMachine initialized from the filing's current status
    """
    return FilingStateMachine(filing=filing)


__all__ = [
    "FilingStateMachine",
    "MILESTONE_FIELDS",
    "TransitionNotAllowed",
    "create_state_machine",
    "history_entry",
]
