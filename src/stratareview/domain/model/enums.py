"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class Domain(StrEnum):
    """Record sections that can carry outstanding items."""

    LEVY = "levy"
    BALANCE_SHEET = "balance_sheet"
    EXPENSES = "expenses"
    COMPLIANCE = "compliance"


class ReviewPhase(StrEnum):
    INTAKE = "intake"
    RECONCILIATION = "reconciliation"
    EXPENSES_ADDITIONAL = "expenses_additional"
    TARGETED_REVERIFY = "targeted_reverify"


class OracleCall(StrEnum):
    """Individual oracle invocations; a phase issues one or more of these."""

    INTAKE = "intake"
    LEVY = "levy"
    BALANCE_SHEET = "balance_sheet"
    EXPENSES = "expenses"
    EXPENSES_ADDITIONAL = "expenses_additional"
    COMPLIANCE = "compliance"
    TARGETED_REVERIFY = "targeted_reverify"


class Severity(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    CRITICAL = "critical"


class TriageSource(StrEnum):
    SYSTEM = "system"
    USER = "user"


class TargetSource(StrEnum):
    SYSTEM = "system"
    TRIAGE = "triage"


class ResolutionKind(StrEnum):
    RESOLVED = "Resolved"
    FLAG = "Flag"
    OVERRIDE = "Override"


class RunType(StrEnum):
    INITIAL = "initial"
    ADDITIONAL = "additional"


class EvidenceBatch(StrEnum):
    INITIAL = "initial"
    ADDITIONAL = "additional"


class ReviewStatus(StrEnum):
    IDLE = "idle"
    COMPLETED = "completed"
    FAILED = "failed"


class ExpenseStatus(StrEnum):
    PASS = "PASS"
    FAIL = "FAIL"
    RISK_FLAG = "RISK_FLAG"


class LineStatus(StrEnum):
    """Balance-sheet statuses the core reasons about; others pass through as text."""

    VERIFIED = "VERIFIED"
    MISSING_BANK_STMT = "MISSING_BANK_STMT"
    NO_SUPPORT = "NO_SUPPORT"
