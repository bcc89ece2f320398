"""Decide which phase a record needs next and guard explicit phase requests."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stratareview.domain.model import EvidenceBatch, ReviewPhase

from .errors import ValidationError
from .expense_runs import has_initial_run

if TYPE_CHECKING:
    from stratareview.domain.model import ReviewRecord


def next_phase(record: ReviewRecord) -> ReviewPhase:
    """Return the phase the record needs next; first matching rule wins.

    There is no terminal phase: a reconciled record keeps answering
    ``targeted_reverify``.
    """

    if record.intake is None or record.intake.registry_empty:
        return ReviewPhase.INTAKE
    if not record.has_reconciliation_data:
        return ReviewPhase.RECONCILIATION
    if record.compliance is None:
        return ReviewPhase.RECONCILIATION
    return ReviewPhase.TARGETED_REVERIFY


def ensure_phase_allowed(record: ReviewRecord, phase: ReviewPhase) -> None:
    """Raise :class:`ValidationError` when ``phase`` may not run on ``record`` now."""

    if not record.evidence_refs(EvidenceBatch.INITIAL):
        raise ValidationError("No evidence files found; submit evidence first")

    locked = record.intake is not None and not record.intake.registry_empty
    if phase is ReviewPhase.INTAKE:
        if record.has_reconciliation_data:
            raise ValidationError(
                "Intake is locked once reconciliation data exists; create a new review"
            )
    elif phase is ReviewPhase.RECONCILIATION:
        if not locked:
            raise ValidationError("Run intake before reconciliation")
    elif phase is ReviewPhase.EXPENSES_ADDITIONAL:
        if not locked or not has_initial_run(record.expense_runs):
            raise ValidationError("Run intake and reconciliation before additional expenses")
        if not record.pending_additional_evidence():
            raise ValidationError("No unprocessed additional evidence submitted")
    else:
        expected = next_phase(record)
        if expected is not ReviewPhase.TARGETED_REVERIFY:
            msg = f"Complete {expected} before running a targeted re-verify"
            raise ValidationError(msg)
