"""Derive the scoped list of items eligible for targeted re-verification."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import TYPE_CHECKING

from stratareview.domain.model import (
    Domain,
    ExpenseStatus,
    LineStatus,
    Severity,
    Target,
    TargetSource,
    item_key,
)

from .expense_runs import effective_items, expense_item_id

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from stratareview.domain.model import (
        BalanceSheetLine,
        ExpenseItem,
        ReviewRecord,
        TriageItem,
    )

LEVY_ITEM_ID = "levy_variance"
GST_ITEM_ID = "gst_variance"
NO_FUND = "N/A"
OUTSTANDING_EXPENSE_STATUSES = frozenset({ExpenseStatus.FAIL.value, ExpenseStatus.RISK_FLAG.value})
_CRITICAL_LINE_STATUSES = frozenset(
    {LineStatus.MISSING_BANK_STMT.value, LineStatus.NO_SUPPORT.value}
)
_WHITESPACE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class Finding:
    """A system-identified outstanding item, before it becomes a target or triage row."""

    domain: Domain
    item_id: str
    description: str
    severity: Severity
    comment: str

    @property
    def key(self) -> str:
        return item_key(self.domain, self.item_id)


def format_money(amount: float | None) -> str:
    return f"${(amount or 0):,.2f}"


def balance_sheet_item_id(line: BalanceSheetLine) -> str:
    return f"{_WHITESPACE.sub('_', line.line_item)}|{line.fund or NO_FUND}"


def is_outstanding_expense(item: ExpenseItem) -> bool:
    return item.status in OUTSTANDING_EXPENSE_STATUSES


def is_outstanding_line(line: BalanceSheetLine) -> bool:
    return bool(line.status) and line.status != LineStatus.VERIFIED


def _levy_findings(record: ReviewRecord) -> Iterable[Finding]:
    variance = record.levy.variance if record.levy is not None else None
    if variance is None or variance == 0:
        return
    yield Finding(
        domain=Domain.LEVY,
        item_id=LEVY_ITEM_ID,
        description=f"Levy Variance: {format_money(variance)}",
        severity=Severity.CRITICAL,
        comment="Calc_Closing vs CurrentYear_Net mismatch",
    )


def _expense_findings(record: ReviewRecord) -> Iterable[Finding]:
    for position, item in enumerate(effective_items(record)):
        if not is_outstanding_expense(item):
            continue
        yield Finding(
            domain=Domain.EXPENSES,
            item_id=expense_item_id(position),
            description=f"{item.payee} ({format_money(item.amount)}) – {item.date}",
            severity=(
                Severity.CRITICAL if item.status == ExpenseStatus.FAIL else Severity.MEDIUM
            ),
            comment=item.status or "",
        )


def _balance_sheet_findings(record: ReviewRecord) -> Iterable[Finding]:
    if record.balance_sheet is None:
        return
    for line in record.balance_sheet.lines:
        if not is_outstanding_line(line):
            continue
        status = line.status or ""
        yield Finding(
            domain=Domain.BALANCE_SHEET,
            item_id=balance_sheet_item_id(line),
            description=f"{line.line_item} – {status}",
            severity=(
                Severity.CRITICAL if status in _CRITICAL_LINE_STATUSES else Severity.MEDIUM
            ),
            comment=line.note or status,
        )


def _compliance_findings(record: ReviewRecord) -> Iterable[Finding]:
    variance = record.compliance.tax_variance if record.compliance is not None else None
    if variance is None or variance == 0:
        return
    yield Finding(
        domain=Domain.COMPLIANCE,
        item_id=GST_ITEM_ID,
        description=f"GST Variance: {format_money(variance)}",
        severity=Severity.CRITICAL,
        comment="GST roll-forward variance",
    )


def system_findings(record: ReviewRecord) -> list[Finding]:
    """Outstanding items in target order: levy, expenses, balance sheet, compliance."""

    return [
        *_levy_findings(record),
        *_expense_findings(record),
        *_balance_sheet_findings(record),
        *_compliance_findings(record),
    ]


def select_targets(record: ReviewRecord, triage: Sequence[TriageItem] = ()) -> list[Target]:
    """Return system targets followed by triage targets not already covered.

    An empty list is a valid answer; callers that need work to do must reject it.
    """

    targets = [
        Target(
            domain=finding.domain,
            item_id=finding.item_id,
            description=finding.description,
            source=TargetSource.SYSTEM,
        )
        for finding in system_findings(record)
    ]
    seen = {target.key for target in targets}
    for entry in triage:
        if entry.key in seen:
            continue
        seen.add(entry.key)
        targets.append(
            Target(
                domain=entry.domain,
                item_id=entry.item_id,
                description=f"{entry.title} – {entry.comment or 'User flagged'}",
                source=TargetSource.TRIAGE,
            )
        )
    return targets
