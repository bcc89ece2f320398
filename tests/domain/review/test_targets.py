from __future__ import annotations

from stratareview.domain.model import (
    BalanceSheetSection,
    Domain,
    RunType,
    TargetSource,
    TriageSource,
)
from stratareview.domain.review.targets import (
    balance_sheet_item_id,
    format_money,
    select_targets,
    system_findings,
)
from tests.helpers.reviews import (
    make_compliance,
    make_expense,
    make_levy,
    make_line,
    make_reconciled_record,
    make_run,
    make_triage_item,
)


def test_clean_record_has_no_targets() -> None:
    record = make_reconciled_record()

    assert select_targets(record, []) == []


def test_targets_follow_domain_order() -> None:
    record = make_reconciled_record(
        levy=make_levy(500.0),
        balance_sheet=BalanceSheetSection(
            lines=(
                make_line(),
                make_line(
                    "Investment Account",
                    fund="Capital Works",
                    status="MISSING_BANK_STMT",
                    note="No bank statement supplied",
                ),
            )
        ),
        expense_runs=(
            make_run(
                make_expense("GL-1", "PASS"),
                make_expense("GL-2", "FAIL", payee="Roof Co"),
                make_expense("GL-3", "RISK_FLAG", payee="Lift Services", amount=None),
            ),
        ),
        compliance=make_compliance(42.5),
    )

    targets = select_targets(record, [])

    assert [(target.domain, target.item_id) for target in targets] == [
        (Domain.LEVY, "levy_variance"),
        (Domain.EXPENSES, "exp_1"),
        (Domain.EXPENSES, "exp_2"),
        (Domain.BALANCE_SHEET, "Investment_Account|Capital Works"),
        (Domain.COMPLIANCE, "gst_variance"),
    ]
    assert targets[0].description == "Levy Variance: $500.00"
    assert targets[1].description == "Roof Co ($1,200.00) – 2025-03-01"
    assert targets[2].description == "Lift Services ($0.00) – 2025-03-01"
    assert targets[3].description == "Investment Account – MISSING_BANK_STMT"
    assert targets[4].description == "GST Variance: $42.50"
    assert all(target.source is TargetSource.SYSTEM for target in targets)


def test_build_targets_is_deterministic() -> None:
    record = make_reconciled_record(
        levy=make_levy(-10.0),
        expense_runs=(make_run(make_expense("GL-1", "FAIL"), make_expense("GL-2", "FAIL")),),
    )

    assert select_targets(record, []) == select_targets(record, [])


def test_zero_and_absent_variances_are_not_targets() -> None:
    record = make_reconciled_record(levy=make_levy(None), compliance=make_compliance(None))

    assert select_targets(record, []) == []


def test_expense_targets_use_folded_view() -> None:
    record = make_reconciled_record(
        expense_runs=(
            make_run(make_expense("g1", "FAIL")),
            make_run(make_expense("g1", "PASS"), run_id="r2", run_type=RunType.ADDITIONAL),
        )
    )

    assert select_targets(record, []) == []


def test_balance_sheet_lines_without_status_are_skipped() -> None:
    record = make_reconciled_record(
        balance_sheet=BalanceSheetSection(lines=(make_line(status=None),))
    )

    assert select_targets(record, []) == []


def test_balance_sheet_item_id_defaults_fund() -> None:
    line = make_line("Cash  at\tBank", fund=None)

    assert balance_sheet_item_id(line) == "Cash_at_Bank|N/A"


def test_triage_targets_are_appended_after_system_targets() -> None:
    record = make_reconciled_record(levy=make_levy(500.0))
    triage = [
        make_triage_item(Domain.EXPENSES, "exp_0", title="Check invoice", comment="Wrong ABN"),
        make_triage_item(Domain.BALANCE_SHEET, "Cash_at_Bank|Admin", title="Cash at Bank"),
    ]

    targets = select_targets(record, triage)

    assert [target.source for target in targets] == [
        TargetSource.SYSTEM,
        TargetSource.TRIAGE,
        TargetSource.TRIAGE,
    ]
    assert targets[1].description == "Check invoice – Wrong ABN"
    assert targets[2].description == "Cash at Bank – User flagged"


def test_system_target_wins_over_matching_triage_entry() -> None:
    record = make_reconciled_record(
        expense_runs=(make_run(make_expense("GL-1", "FAIL")),),
    )
    triage = [make_triage_item(Domain.EXPENSES, "exp_0", title="Duplicate flag")]

    targets = select_targets(record, triage)

    assert len(targets) == 1
    assert targets[0].source is TargetSource.SYSTEM


def test_duplicate_triage_entries_yield_one_target() -> None:
    record = make_reconciled_record()
    triage = [
        make_triage_item(Domain.LEVY, "levy_variance", triage_id="a"),
        make_triage_item(Domain.LEVY, "levy_variance", triage_id="b"),
    ]

    assert len(select_targets(record, triage)) == 1


def test_system_findings_carry_severity_and_comment() -> None:
    record = make_reconciled_record(
        balance_sheet=BalanceSheetSection(
            lines=(make_line("Sundry Debtors", status="VARIANCE"),),
        ),
        expense_runs=(make_run(make_expense("GL-1", "RISK_FLAG")),),
    )

    findings = system_findings(record)

    assert [(finding.severity, finding.comment) for finding in findings] == [
        ("medium", "RISK_FLAG"),
        ("medium", "VARIANCE"),
    ]


def test_triage_source_value_is_independent_of_target_source() -> None:
    item = make_triage_item(source=TriageSource.SYSTEM)

    assert select_targets(make_reconciled_record(), [item])[0].source is TargetSource.TRIAGE


def test_format_money() -> None:
    assert format_money(1234.5) == "$1,234.50"
    assert format_money(None) == "$0.00"
    assert format_money(-20) == "$-20.00"
