"""Merge oracle phase outputs into the review record.

Every oracle call owns a fixed set of top-level output keys and each key maps to
exactly one record section, so a phase merge is a union of per-section
replacements (plus one appended expense run). Keys outside a call's set are
rejected rather than silently merged.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import replace
from logging import getLogger
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from stratareview.domain.model import (
    BalanceSheetLine,
    BalanceSheetSection,
    ComplianceSection,
    ExpenseItem,
    ExpenseRun,
    IntakeSection,
    LevySection,
    OracleCall,
    ResolutionRow,
    ReverifyAnnotation,
    ReverifyHistoryEntry,
    ReviewPhase,
    ReviewStatus,
    RunType,
    TargetSource,
    traced_amount,
)

from .errors import MergeConflictError, OracleError, OracleOutputError
from .expense_runs import has_initial_run

if TYPE_CHECKING:
    from collections.abc import Callable
    from datetime import datetime

    from stratareview.domain.model import Payload, ReviewRecord, Target

log = getLogger(__name__)

INITIAL_RUN_ID = "initial"

REQUIRED_OUTPUT_KEYS: Mapping[OracleCall, frozenset[str]] = {
    OracleCall.INTAKE: frozenset({"document_register", "intake_summary"}),
    OracleCall.LEVY: frozenset({"levy_reconciliation"}),
    OracleCall.BALANCE_SHEET: frozenset({"assets_and_cash"}),
    OracleCall.EXPENSES: frozenset({"expense_samples"}),
    OracleCall.EXPENSES_ADDITIONAL: frozenset({"document_register", "expense_samples_additional"}),
    OracleCall.COMPLIANCE: frozenset({"statutory_compliance"}),
    # a missing table falls back to one row per target
    OracleCall.TARGETED_REVERIFY: frozenset(),
}

INTAKE_EXTRACT_KEYS = frozenset({"bs_extract", "pl_extract", "core_data_positions"})

OPTIONAL_OUTPUT_KEYS: Mapping[OracleCall, frozenset[str]] = {
    OracleCall.INTAKE: INTAKE_EXTRACT_KEYS,
    OracleCall.TARGETED_REVERIFY: frozenset(
        {"ai_attempt_updates", "ai_attempt_resolution_table"}
    ),
}

PHASE_CALLS: Mapping[ReviewPhase, tuple[OracleCall, ...]] = {
    ReviewPhase.INTAKE: (OracleCall.INTAKE,),
    ReviewPhase.RECONCILIATION: (
        OracleCall.LEVY,
        OracleCall.BALANCE_SHEET,
        OracleCall.EXPENSES,
        OracleCall.COMPLIANCE,
    ),
    ReviewPhase.EXPENSES_ADDITIONAL: (OracleCall.EXPENSES_ADDITIONAL,),
    ReviewPhase.TARGETED_REVERIFY: (OracleCall.TARGETED_REVERIFY,),
}

FALLBACK_CONDUCT = "(No resolution table returned – see proposed updates)"


def check_required_keys(call: OracleCall, output: Mapping[str, Any]) -> None:
    """Raise when ``output`` lacks a key ``call`` must produce or carries a foreign one."""

    required = REQUIRED_OUTPUT_KEYS[call]
    missing = required - output.keys()
    if missing:
        raise OracleOutputError(call, missing)
    unexpected = output.keys() - required - OPTIONAL_OUTPUT_KEYS.get(call, frozenset())
    if unexpected:
        raise MergeConflictError(call, unexpected)


def _mapping(value: object, where: str) -> Payload:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        msg = f"Expected an object for {where}, got {type(value).__name__}"
        raise OracleError(msg)
    return dict(value)  # pyright: ignore[reportUnknownArgumentType]


def _rows(value: object, where: str) -> tuple[Payload, ...]:
    if value is None:
        return ()
    if isinstance(value, str | bytes) or not isinstance(value, Sequence):
        msg = f"Expected a list for {where}, got {type(value).__name__}"
        raise OracleError(msg)
    return tuple(_mapping(row, where) for row in value)


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# -- per-section parsers -------------------------------------------------------


def parse_intake(output: Mapping[str, Any]) -> IntakeSection:
    return IntakeSection(
        document_register=_rows(output["document_register"], "document_register"),
        intake_summary=_mapping(output["intake_summary"], "intake_summary"),
        extracts={key: output[key] for key in sorted(INTAKE_EXTRACT_KEYS & output.keys())},
    )


def parse_levy(output: Mapping[str, Any]) -> LevySection:
    payload = _mapping(output["levy_reconciliation"], "levy_reconciliation")
    return LevySection(
        master_table=_mapping(payload.get("master_table"), "levy_reconciliation.master_table"),
        high_risk_debtors=_rows(
            payload.get("high_risk_debtors"), "levy_reconciliation.high_risk_debtors"
        ),
    )


_LINE_FIELDS = frozenset({"line_item", "fund", "status"})


def parse_balance_sheet(output: Mapping[str, Any]) -> BalanceSheetSection:
    payload = _mapping(output["assets_and_cash"], "assets_and_cash")
    rows = _rows(
        payload.get("balance_sheet_verification"), "assets_and_cash.balance_sheet_verification"
    )
    return BalanceSheetSection(
        lines=tuple(
            BalanceSheetLine(
                line_item=_text(row.get("line_item")) or "",
                fund=_text(row.get("fund")),
                status=_text(row.get("status")),
                details={key: value for key, value in row.items() if key not in _LINE_FIELDS},
            )
            for row in rows
        )
    )


_EXPENSE_FIELDS = frozenset({"GL_ID", "Overall_Status", "GL_Payee", "GL_Date"})


def parse_expense_item(row: Payload) -> ExpenseItem:
    return ExpenseItem(
        gl_id=_text(row.get("GL_ID")),
        status=_text(row.get("Overall_Status")),
        payee=_text(row.get("GL_Payee")),
        amount=traced_amount(row, "GL_Amount"),
        date=_text(row.get("GL_Date")),
        details={key: value for key, value in row.items() if key not in _EXPENSE_FIELDS},
    )


def parse_expense_items(output: Mapping[str, Any], key: str) -> tuple[ExpenseItem, ...]:
    return tuple(parse_expense_item(row) for row in _rows(output[key], key))


def parse_compliance(output: Mapping[str, Any]) -> ComplianceSection:
    payload = _mapping(output["statutory_compliance"], "statutory_compliance")
    return ComplianceSection(
        insurance=_mapping(payload.get("insurance"), "statutory_compliance.insurance"),
        gst_reconciliation=_mapping(
            payload.get("gst_reconciliation"), "statutory_compliance.gst_reconciliation"
        ),
        income_tax=_mapping(payload.get("income_tax"), "statutory_compliance.income_tax"),
    )


def parse_resolution_table(output: Mapping[str, Any]) -> tuple[ResolutionRow, ...]:
    rows = _rows(output.get("ai_attempt_resolution_table"), "ai_attempt_resolution_table")
    return tuple(
        ResolutionRow(
            item=_text(row.get("item")) or "",
            issue_identified=_text(row.get("issue_identified")) or "",
            conduct=_text(row.get("ai_attempt_conduct") or row.get("conduct")) or "",
            result=_text(row.get("result")) or "",
            status=_text(row.get("status")) or "",
        )
        for row in rows
    )


# -- phase merges --------------------------------------------------------------


def _default_run_id() -> str:
    return uuid4().hex


def _completed(record: ReviewRecord, now: datetime, **changes: Any) -> ReviewRecord:
    return replace(
        record,
        **changes,
        status=ReviewStatus.COMPLETED,
        failure=None,
        updated_at=now,
    )


def _merge_intake(outputs: Mapping[OracleCall, Mapping[str, Any]]) -> dict[str, Any]:
    return {"intake": parse_intake(outputs[OracleCall.INTAKE])}


def _merge_reconciliation(
    record: ReviewRecord,
    outputs: Mapping[OracleCall, Mapping[str, Any]],
    *,
    now: datetime,
    evidence_refs: Sequence[str],
    run_id_factory: Callable[[], str],
) -> dict[str, Any]:
    if has_initial_run(record.expense_runs):
        # later passes supplement the first one, so they fold over it
        run_id, run_type = run_id_factory(), RunType.ADDITIONAL
    else:
        run_id, run_type = INITIAL_RUN_ID, RunType.INITIAL
    run = ExpenseRun(
        run_id=run_id,
        run_type=run_type,
        created_at=now,
        items=parse_expense_items(outputs[OracleCall.EXPENSES], "expense_samples"),
        evidence_refs=tuple(evidence_refs),
    )
    return {
        "levy": parse_levy(outputs[OracleCall.LEVY]),
        "balance_sheet": parse_balance_sheet(outputs[OracleCall.BALANCE_SHEET]),
        "compliance": parse_compliance(outputs[OracleCall.COMPLIANCE]),
        "expense_runs": (*record.expense_runs, run),
    }


def _merge_expenses_additional(
    record: ReviewRecord,
    outputs: Mapping[OracleCall, Mapping[str, Any]],
    *,
    now: datetime,
    evidence_refs: Sequence[str],
    run_id_factory: Callable[[], str],
) -> dict[str, Any]:
    output = outputs[OracleCall.EXPENSES_ADDITIONAL]
    intake = record.intake or IntakeSection()
    run = ExpenseRun(
        run_id=run_id_factory(),
        run_type=RunType.ADDITIONAL,
        created_at=now,
        items=parse_expense_items(output, "expense_samples_additional"),
        evidence_refs=tuple(evidence_refs),
    )
    consumed = set(evidence_refs)
    return {
        "intake": replace(
            intake,
            document_register=_rows(output["document_register"], "document_register"),
        ),
        "expense_runs": (*record.expense_runs, run),
        "evidence": tuple(
            replace(entry, consumed=True) if entry.ref in consumed else entry
            for entry in record.evidence
        ),
    }


def merge_phase(
    record: ReviewRecord,
    phase: ReviewPhase,
    outputs: Mapping[OracleCall, Mapping[str, Any]],
    *,
    now: datetime,
    evidence_refs: Sequence[str] = (),
    run_id_factory: Callable[[], str] = _default_run_id,
) -> ReviewRecord:
    """Commit every call output of ``phase`` into a new record, all or nothing.

    ``outputs`` must hold one entry per call of the phase; each is checked with
    :func:`check_required_keys` before anything is parsed.
    """

    if phase is ReviewPhase.TARGETED_REVERIFY:
        msg = "Targeted re-verify output is merged with merge_reverify()"
        raise ValueError(msg)

    calls = PHASE_CALLS[phase]
    missing_calls = [call for call in calls if call not in outputs]
    if missing_calls:
        msg = f"{phase} is missing output for: {', '.join(missing_calls)}"
        raise OracleError(msg)
    foreign_calls = outputs.keys() - set(calls)
    if foreign_calls:
        raise MergeConflictError(phase, foreign_calls)
    for call in calls:
        check_required_keys(call, outputs[call])

    if phase is ReviewPhase.INTAKE:
        changes = _merge_intake(outputs)
    elif phase is ReviewPhase.RECONCILIATION:
        changes = _merge_reconciliation(
            record, outputs, now=now, evidence_refs=evidence_refs, run_id_factory=run_id_factory
        )
    else:
        changes = _merge_expenses_additional(
            record, outputs, now=now, evidence_refs=evidence_refs, run_id_factory=run_id_factory
        )
    log.debug("Merged %s into %s: %s", phase, record.record_id, ", ".join(sorted(changes)))
    return _completed(record, now, **changes)


def fallback_resolution_table(targets: Sequence[Target]) -> tuple[ResolutionRow, ...]:
    return tuple(
        ResolutionRow(
            item=target.description,
            issue_identified=(
                "User flagged" if target.source is TargetSource.TRIAGE else target.description
            ),
            conduct=FALLBACK_CONDUCT,
            result="Patched",
            status="–",
        )
        for target in targets
    )


def merge_reverify(
    record: ReviewRecord,
    targets: Sequence[Target],
    output: Mapping[str, Any],
    *,
    now: datetime,
) -> ReviewRecord:
    """Attach a targeted re-verify result as an annotation; sections stay untouched."""

    check_required_keys(OracleCall.TARGETED_REVERIFY, output)
    table = parse_resolution_table(output) or fallback_resolution_table(targets)
    previous = record.reverify or ReverifyAnnotation()
    annotation = ReverifyAnnotation(
        resolution_table=table,
        history=(
            *previous.history,
            ReverifyHistoryEntry(timestamp=now, target_count=len(targets), resolution_table=table),
        ),
        proposed_updates=_mapping(output.get("ai_attempt_updates"), "ai_attempt_updates"),
    )
    return _completed(record, now, reverify=annotation)
