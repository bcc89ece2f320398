"""Typed record sections produced by the oracle phases.

Each section keeps the raw oracle payload for the fields the core does not reason
about (``details``/``extracts``) so nothing is lost on a round trip, while the
fields that drive sequencing, targets and triage are lifted into attributes.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from .enums import RunType

type Payload = Mapping[str, Any]


def traced_amount(container: Payload, key: str) -> float | None:
    """Return ``container[key]["amount"]`` as a number, or ``None`` when absent."""

    entry = container.get(key)
    if not isinstance(entry, Mapping):
        return None
    amount = entry.get("amount")  # pyright: ignore[reportUnknownMemberType]
    if isinstance(amount, bool):
        return None
    if isinstance(amount, int | float):
        return float(amount)
    if isinstance(amount, str):
        try:
            return float(amount.replace(",", "").replace("$", ""))
        except ValueError:
            return None
    return None


@dataclass(frozen=True, slots=True, kw_only=True)
class IntakeSection:
    document_register: tuple[Payload, ...] = ()
    intake_summary: Payload = field(default_factory=dict)
    # bs_extract, pl_extract, core_data_positions and anything else locked at intake
    extracts: Payload = field(default_factory=dict)

    @property
    def registry_empty(self) -> bool:
        return not self.document_register


@dataclass(frozen=True, slots=True, kw_only=True)
class LevySection:
    master_table: Payload = field(default_factory=dict)
    high_risk_debtors: tuple[Payload, ...] = ()

    @property
    def is_empty(self) -> bool:
        # key presence, not a zero amount, tells "never run" apart from "balanced"
        return not self.master_table

    @property
    def variance(self) -> float | None:
        return traced_amount(self.master_table, "Levy_Variance")


@dataclass(frozen=True, slots=True, kw_only=True)
class BalanceSheetLine:
    line_item: str
    fund: str | None = None
    status: str | None = None
    details: Payload = field(default_factory=dict)

    @property
    def note(self) -> str | None:
        for key in ("supporting_note", "note"):
            value = self.details.get(key)
            if isinstance(value, str) and value:
                return value
        return None


@dataclass(frozen=True, slots=True, kw_only=True)
class BalanceSheetSection:
    lines: tuple[BalanceSheetLine, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.lines


@dataclass(frozen=True, slots=True, kw_only=True)
class ComplianceSection:
    insurance: Payload = field(default_factory=dict)
    gst_reconciliation: Payload = field(default_factory=dict)
    income_tax: Payload = field(default_factory=dict)

    @property
    def tax_variance(self) -> float | None:
        return traced_amount(self.gst_reconciliation, "GST_Rec_Variance")


@dataclass(frozen=True, slots=True, kw_only=True)
class ExpenseItem:
    gl_id: str | None = None
    status: str | None = None
    payee: str | None = None
    amount: float | None = None
    date: str | None = None
    details: Payload = field(default_factory=dict)


@dataclass(frozen=True, slots=True, kw_only=True)
class ExpenseRun:
    run_id: str
    run_type: RunType
    created_at: datetime
    items: tuple[ExpenseItem, ...] = ()
    evidence_refs: tuple[str, ...] = ()
