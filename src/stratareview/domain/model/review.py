"""Review record aggregate and its sidecars (triage, resolutions, evidence)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from .enums import (
    Domain,
    EvidenceBatch,
    ResolutionKind,
    ReviewPhase,
    ReviewStatus,
    Severity,
    TargetSource,
    TriageSource,
)
from .sections import (
    BalanceSheetSection,
    ComplianceSection,
    ExpenseRun,
    IntakeSection,
    LevySection,
    Payload,
)


def item_key(domain: Domain, item_id: str) -> str:
    """Identity key shared by triage, targets and resolutions."""

    return f"{domain}:{item_id}"


@dataclass(frozen=True, slots=True, kw_only=True)
class TriageItem:
    id: str
    domain: Domain
    item_id: str
    title: str
    severity: Severity
    source: TriageSource
    comment: str
    timestamp: datetime

    @property
    def key(self) -> str:
        return item_key(self.domain, self.item_id)


@dataclass(frozen=True, slots=True, kw_only=True)
class Target:
    domain: Domain
    item_id: str
    description: str
    source: TargetSource

    @property
    def key(self) -> str:
        return item_key(self.domain, self.item_id)


@dataclass(frozen=True, slots=True, kw_only=True)
class UserResolution:
    item_key: str
    kind: ResolutionKind
    comment: str
    resolved_at: datetime
    resolved_by: str | None = None


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionRow:
    item: str
    issue_identified: str
    conduct: str
    result: str
    status: str


@dataclass(frozen=True, slots=True, kw_only=True)
class ReverifyHistoryEntry:
    timestamp: datetime
    target_count: int
    resolution_table: tuple[ResolutionRow, ...] = ()


@dataclass(frozen=True, slots=True, kw_only=True)
class ReverifyAnnotation:
    resolution_table: tuple[ResolutionRow, ...] = ()
    history: tuple[ReverifyHistoryEntry, ...] = ()
    # section patches suggested by the oracle; kept for review, never applied
    proposed_updates: Payload = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class EvidenceFile:
    ref: str
    name: str
    batch: EvidenceBatch
    uploaded_at: datetime
    consumed: bool = False


@dataclass(frozen=True, slots=True, kw_only=True)
class PhaseFailure:
    phase: ReviewPhase
    kind: str
    message: str
    retryable: bool
    failed_at: datetime


@dataclass(frozen=True, slots=True, kw_only=True)
class ReviewRecord:
    """Accumulator for one review.

    Sections are replaced wholesale by the phase that owns them; ``expense_runs`` is
    the only append-only section. Absent sections are ``None``.
    """

    record_id: str
    name: str
    created_at: datetime
    updated_at: datetime
    intake: IntakeSection | None = None
    levy: LevySection | None = None
    balance_sheet: BalanceSheetSection | None = None
    expense_runs: tuple[ExpenseRun, ...] = ()
    compliance: ComplianceSection | None = None
    reverify: ReverifyAnnotation | None = None
    status: ReviewStatus = ReviewStatus.IDLE
    failure: PhaseFailure | None = None
    triage: tuple[TriageItem, ...] = ()
    resolutions: tuple[UserResolution, ...] = ()
    evidence: tuple[EvidenceFile, ...] = ()

    @property
    def has_reconciliation_data(self) -> bool:
        return (
            (self.levy is not None and not self.levy.is_empty)
            or (self.balance_sheet is not None and not self.balance_sheet.is_empty)
            or any(run.items for run in self.expense_runs)
        )

    def evidence_refs(self, batch: EvidenceBatch | None = None) -> tuple[str, ...]:
        return tuple(f.ref for f in self.evidence if batch is None or f.batch is batch)

    def pending_additional_evidence(self) -> tuple[EvidenceFile, ...]:
        return tuple(
            f for f in self.evidence if f.batch is EvidenceBatch.ADDITIONAL and not f.consumed
        )
