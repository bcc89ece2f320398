"""Review domain model."""

from __future__ import annotations

from .enums import (
    Domain,
    EvidenceBatch,
    ExpenseStatus,
    LineStatus,
    OracleCall,
    ResolutionKind,
    ReviewPhase,
    ReviewStatus,
    RunType,
    Severity,
    TargetSource,
    TriageSource,
)
from .review import (
    EvidenceFile,
    PhaseFailure,
    ResolutionRow,
    ReverifyAnnotation,
    ReverifyHistoryEntry,
    ReviewRecord,
    Target,
    TriageItem,
    UserResolution,
    item_key,
)
from .sections import (
    BalanceSheetLine,
    BalanceSheetSection,
    ComplianceSection,
    ExpenseItem,
    ExpenseRun,
    IntakeSection,
    LevySection,
    Payload,
    traced_amount,
)

__all__ = [
    "BalanceSheetLine",
    "BalanceSheetSection",
    "ComplianceSection",
    "Domain",
    "EvidenceBatch",
    "EvidenceFile",
    "ExpenseItem",
    "ExpenseRun",
    "ExpenseStatus",
    "IntakeSection",
    "LevySection",
    "LineStatus",
    "OracleCall",
    "Payload",
    "PhaseFailure",
    "ResolutionKind",
    "ResolutionRow",
    "ReverifyAnnotation",
    "ReverifyHistoryEntry",
    "ReviewPhase",
    "ReviewRecord",
    "ReviewStatus",
    "RunType",
    "Severity",
    "Target",
    "TargetSource",
    "TriageItem",
    "TriageSource",
    "UserResolution",
    "item_key",
    "traced_amount",
]
