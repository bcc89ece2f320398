"""Keep the triage watch list in sync with the record.

System findings are added, items whose underlying condition is now resolved are
dropped (whoever flagged them), and user flags are kept until then or until
explicitly removed.
"""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from stratareview.domain.model import Domain, LineStatus, TriageItem, TriageSource, item_key

from .expense_runs import effective_items, expense_item_id
from .targets import (
    GST_ITEM_ID,
    LEVY_ITEM_ID,
    balance_sheet_item_id,
    is_outstanding_expense,
    system_findings,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime

    from stratareview.domain.model import ReviewRecord

log = getLogger(__name__)


def resolved_keys(record: ReviewRecord) -> set[str]:
    """Keys whose condition is settled: the complement of the target inclusion rules.

    A missing levy or compliance variance counts as settled; missing balance-sheet
    lines or expense items contribute nothing (the phase simply has not run).
    """

    keys: set[str] = set()
    levy_variance = record.levy.variance if record.levy is not None else None
    if not levy_variance:
        keys.add(item_key(Domain.LEVY, LEVY_ITEM_ID))
    for position, item in enumerate(effective_items(record)):
        if not is_outstanding_expense(item):
            keys.add(item_key(Domain.EXPENSES, expense_item_id(position)))
    if record.balance_sheet is not None:
        for line in record.balance_sheet.lines:
            if line.status == LineStatus.VERIFIED:
                keys.add(item_key(Domain.BALANCE_SHEET, balance_sheet_item_id(line)))
    tax_variance = record.compliance.tax_variance if record.compliance is not None else None
    if not tax_variance:
        keys.add(item_key(Domain.COMPLIANCE, GST_ITEM_ID))
    return keys


def derive_system_items(record: ReviewRecord, now: datetime) -> tuple[TriageItem, ...]:
    return tuple(
        TriageItem(
            id=f"sys:{finding.domain}:{finding.item_id}",
            domain=finding.domain,
            item_id=finding.item_id,
            title=finding.description,
            severity=finding.severity,
            source=TriageSource.SYSTEM,
            comment=finding.comment,
            timestamp=now,
        )
        for finding in system_findings(record)
    )


def reconcile(
    existing: Iterable[TriageItem],
    new_system_items: Iterable[TriageItem],
    record: ReviewRecord,
) -> tuple[TriageItem, ...]:
    """Merge ``new_system_items`` into ``existing`` against the current record.

    Idempotent: reconciling the result again with the same inputs is a no-op.
    """

    resolved = resolved_keys(record)
    reconciled: list[TriageItem] = []
    surviving: set[str] = set()
    dropped = 0
    for item in existing:
        if item.key in resolved or item.key in surviving:
            dropped += 1
            continue
        surviving.add(item.key)
        reconciled.append(item)
    added = 0
    for item in new_system_items:
        if item.key in surviving or item.key in resolved:
            continue
        surviving.add(item.key)
        reconciled.append(item)
        added += 1
    if dropped or added:
        log.debug(
            "Triage reconciled for %s: %d dropped, %d added", record.record_id, dropped, added
        )
    return tuple(reconciled)


def flag_item(triage: Sequence[TriageItem], item: TriageItem) -> tuple[TriageItem, ...]:
    """Add ``item``, replacing whatever was flagged under the same key."""

    return (*(entry for entry in triage if entry.key != item.key), item)


def remove_item(triage: Sequence[TriageItem], triage_id: str) -> tuple[TriageItem, ...]:
    return tuple(entry for entry in triage if entry.id != triage_id)
