from __future__ import annotations

from dataclasses import replace

import pytest

from stratareview.domain.model import (
    Domain,
    EvidenceBatch,
    OracleCall,
    ReviewPhase,
    ReviewStatus,
    RunType,
    Target,
    TargetSource,
)
from stratareview.domain.review import (
    MergeConflictError,
    OracleError,
    OracleOutputError,
    check_required_keys,
    merge_phase,
    merge_reverify,
)
from stratareview.domain.review.merge import (
    FALLBACK_CONDUCT,
    parse_balance_sheet,
    parse_expense_item,
)
from tests.helpers.reviews import (
    BASE_TIME,
    SequentialIds,
    balance_sheet_output,
    compliance_output,
    expense_row,
    expenses_output,
    intake_output,
    levy_output,
    make_evidence,
    make_intake,
    make_reconciled_record,
    make_record,
    reconciliation_outputs,
)


def test_check_required_keys_accepts_exact_output() -> None:
    check_required_keys(OracleCall.LEVY, levy_output())


def test_check_required_keys_reports_missing_keys() -> None:
    with pytest.raises(OracleOutputError) as excinfo:
        check_required_keys(OracleCall.INTAKE, {"document_register": []})

    assert excinfo.value.missing == ("intake_summary",)


def test_check_required_keys_rejects_foreign_keys() -> None:
    output = {**levy_output(), "assets_and_cash": {}}

    with pytest.raises(MergeConflictError) as excinfo:
        check_required_keys(OracleCall.LEVY, output)

    assert excinfo.value.unexpected == ("assets_and_cash",)


def test_merge_intake_locks_register_and_extracts() -> None:
    record = make_record()

    merged = merge_phase(
        record, ReviewPhase.INTAKE, {OracleCall.INTAKE: intake_output(3)}, now=BASE_TIME
    )

    assert merged.intake is not None
    assert len(merged.intake.document_register) == 3
    assert merged.intake.intake_summary["registered_for_gst"] is True
    assert set(merged.intake.extracts) == {"bs_extract"}
    assert merged.status is ReviewStatus.COMPLETED
    assert merged.updated_at == BASE_TIME


def test_merge_reconciliation_writes_every_section() -> None:
    record = make_record(intake=make_intake())
    outputs = reconciliation_outputs(
        levy=levy_output(250.0),
        expenses=expenses_output(expense_row("GL-1", "FAIL"), expense_row("GL-2", "PASS")),
    )

    merged = merge_phase(
        record,
        ReviewPhase.RECONCILIATION,
        outputs,
        now=BASE_TIME,
        evidence_refs=record.evidence_refs(),
    )

    assert merged.levy is not None
    assert merged.levy.variance == 250.0
    assert merged.balance_sheet is not None
    assert merged.balance_sheet.lines[0].line_item == "Cash at Bank"
    assert merged.compliance is not None
    assert merged.compliance.tax_variance == 0.0
    assert len(merged.expense_runs) == 1
    run = merged.expense_runs[0]
    assert run.run_id == "initial"
    assert run.run_type is RunType.INITIAL
    assert [item.gl_id for item in run.items] == ["GL-1", "GL-2"]
    assert run.evidence_refs == record.evidence_refs()
    assert merged.intake == record.intake


def test_merge_is_order_independent() -> None:
    record = make_record(intake=make_intake())
    outputs = reconciliation_outputs(levy=levy_output(10.0))
    reversed_outputs = dict(reversed(list(outputs.items())))

    first = merge_phase(record, ReviewPhase.RECONCILIATION, outputs, now=BASE_TIME)
    second = merge_phase(record, ReviewPhase.RECONCILIATION, reversed_outputs, now=BASE_TIME)

    assert first == second


def test_second_reconciliation_appends_a_fresh_run() -> None:
    record = make_record(intake=make_intake())
    ids = SequentialIds("run")

    once = merge_phase(
        record,
        ReviewPhase.RECONCILIATION,
        reconciliation_outputs(),
        now=BASE_TIME,
        run_id_factory=ids,
    )
    twice = merge_phase(
        once,
        ReviewPhase.RECONCILIATION,
        reconciliation_outputs(),
        now=BASE_TIME,
        run_id_factory=ids,
    )

    assert [run.run_id for run in twice.expense_runs] == ["initial", "run-1"]
    assert [run.run_type for run in twice.expense_runs] == [RunType.INITIAL, RunType.ADDITIONAL]


def test_missing_call_output_fails_whole_phase() -> None:
    record = make_record(intake=make_intake())
    outputs = reconciliation_outputs()
    del outputs[OracleCall.COMPLIANCE]

    with pytest.raises(OracleError):
        merge_phase(record, ReviewPhase.RECONCILIATION, outputs, now=BASE_TIME)


def test_foreign_call_output_is_a_conflict() -> None:
    record = make_record(intake=make_intake())
    outputs = {OracleCall.INTAKE: intake_output(), OracleCall.LEVY: levy_output()}

    with pytest.raises(MergeConflictError):
        merge_phase(record, ReviewPhase.INTAKE, outputs, now=BASE_TIME)


def test_bad_section_shape_is_an_oracle_error() -> None:
    record = make_record(intake=make_intake())
    outputs = reconciliation_outputs(balance_sheet={"assets_and_cash": ["not", "an", "object"]})

    with pytest.raises(OracleError):
        merge_phase(record, ReviewPhase.RECONCILIATION, outputs, now=BASE_TIME)


def test_merge_phase_refuses_targeted_reverify() -> None:
    with pytest.raises(ValueError, match="merge_reverify"):
        merge_phase(make_record(), ReviewPhase.TARGETED_REVERIFY, {}, now=BASE_TIME)


def test_additional_expenses_append_run_and_consume_evidence() -> None:
    additional = make_evidence("late_invoice.pdf", batch=EvidenceBatch.ADDITIONAL)
    record = make_reconciled_record(evidence=(make_evidence(), additional))
    output = {
        "document_register": [{"Document_Origin_Name": "late_invoice.pdf"}],
        "expense_samples_additional": [expense_row("GL-1", "PASS")],
    }

    merged = merge_phase(
        record,
        ReviewPhase.EXPENSES_ADDITIONAL,
        {OracleCall.EXPENSES_ADDITIONAL: output},
        now=BASE_TIME,
        evidence_refs=(additional.ref,),
        run_id_factory=lambda: "supplement-1",
    )

    assert [run.run_id for run in merged.expense_runs] == ["initial", "supplement-1"]
    assert merged.expense_runs[-1].run_type is RunType.ADDITIONAL
    assert merged.pending_additional_evidence() == ()
    assert merged.intake is not None
    assert record.intake is not None
    assert merged.intake.document_register == ({"Document_Origin_Name": "late_invoice.pdf"},)
    assert merged.intake.intake_summary == record.intake.intake_summary
    assert merged.levy == record.levy


def test_parse_expense_item_keeps_unlifted_fields() -> None:
    row = {**expense_row("GL-9", "RISK_FLAG"), "Invoice_Status": "MISSING"}

    item = parse_expense_item(row)

    assert item.gl_id == "GL-9"
    assert item.amount == 1200.0
    assert item.details["Invoice_Status"] == "MISSING"
    assert "GL_Amount" in item.details


def test_parse_balance_sheet_reads_notes() -> None:
    section = parse_balance_sheet(
        balance_sheet_output(
            {"line_item": "Owners Funds", "status": "NO_SUPPORT", "note": "No minutes"}
        )
    )

    line = section.lines[0]
    assert line.fund is None
    assert line.note == "No minutes"


def _targets() -> list[Target]:
    return [
        Target(
            domain=Domain.LEVY,
            item_id="levy_variance",
            description="Levy Variance: $500.00",
            source=TargetSource.SYSTEM,
        ),
        Target(
            domain=Domain.EXPENSES,
            item_id="exp_4",
            description="Check invoice – User flagged",
            source=TargetSource.TRIAGE,
        ),
    ]


def test_merge_reverify_only_writes_annotation() -> None:
    record = make_reconciled_record()
    output = {
        "ai_attempt_resolution_table": [
            {
                "item": "Levy Variance",
                "issue_identified": "Opening balance mismatch",
                "ai_attempt_conduct": "Compared levy register to ledger",
                "result": "Variance explained",
                "status": "RESOLVED",
            }
        ],
        "ai_attempt_updates": {"levy_reconciliation": {"master_table": {}}},
    }

    merged = merge_reverify(record, _targets(), output, now=BASE_TIME)

    assert merged.reverify is not None
    assert merged.reverify.resolution_table[0].conduct == "Compared levy register to ledger"
    assert merged.reverify.proposed_updates == output["ai_attempt_updates"]
    assert len(merged.reverify.history) == 1
    assert merged.reverify.history[0].target_count == 2
    untouched = replace(
        merged, reverify=None, status=record.status, updated_at=record.updated_at
    )
    assert untouched == record


def test_merge_reverify_falls_back_to_one_row_per_target() -> None:
    merged = merge_reverify(make_reconciled_record(), _targets(), {}, now=BASE_TIME)

    assert merged.reverify is not None
    rows = merged.reverify.resolution_table
    assert [row.item for row in rows] == [target.description for target in _targets()]
    assert rows[0].issue_identified == "Levy Variance: $500.00"
    assert rows[1].issue_identified == "User flagged"
    assert all(row.conduct == FALLBACK_CONDUCT for row in rows)


def test_merge_reverify_appends_history() -> None:
    record = make_reconciled_record()
    once = merge_reverify(record, _targets(), {}, now=BASE_TIME)
    twice = merge_reverify(once, _targets()[:1], {}, now=BASE_TIME)

    assert twice.reverify is not None
    assert [entry.target_count for entry in twice.reverify.history] == [2, 1]
    assert len(twice.reverify.resolution_table) == 1


def test_merge_reverify_rejects_foreign_keys() -> None:
    with pytest.raises(MergeConflictError):
        merge_reverify(
            make_reconciled_record(), _targets(), compliance_output(), now=BASE_TIME
        )
