from __future__ import annotations

from dataclasses import replace

from stratareview.domain.model import BalanceSheetSection, Domain, RunType, TriageSource
from stratareview.domain.review.triage import (
    derive_system_items,
    flag_item,
    reconcile,
    remove_item,
    resolved_keys,
)
from tests.helpers.reviews import (
    BASE_TIME,
    make_compliance,
    make_expense,
    make_levy,
    make_line,
    make_reconciled_record,
    make_record,
    make_run,
    make_triage_item,
)


def test_derive_system_items_mirrors_findings() -> None:
    record = make_reconciled_record(levy=make_levy(500.0))

    items = derive_system_items(record, BASE_TIME)

    assert len(items) == 1
    assert items[0].id == "sys:levy:levy_variance"
    assert items[0].source is TriageSource.SYSTEM
    assert items[0].key == "levy:levy_variance"
    assert items[0].timestamp == BASE_TIME


def test_reconcile_adds_new_system_items() -> None:
    record = make_reconciled_record(levy=make_levy(500.0))

    reconciled = reconcile((), derive_system_items(record, BASE_TIME), record)

    assert [item.key for item in reconciled] == ["levy:levy_variance"]


def test_reconcile_is_idempotent() -> None:
    record = make_reconciled_record(
        levy=make_levy(500.0),
        expense_runs=(make_run(make_expense("GL-1", "FAIL"), make_expense("GL-2", "PASS")),),
    )
    existing = (
        make_triage_item(Domain.EXPENSES, "exp_1", title="Paid twice"),
        make_triage_item(Domain.EXPENSES, "exp_0", title="Same key as a system item"),
        make_triage_item(Domain.COMPLIANCE, "insurance", title="Policy lapsed"),
    )
    system_items = derive_system_items(record, BASE_TIME)

    once = reconcile(existing, system_items, record)
    twice = reconcile(once, system_items, record)

    assert twice == once
    assert len({item.key for item in once}) == len(once)


def test_levy_flag_is_dropped_once_variance_clears() -> None:
    flagged = make_reconciled_record(levy=make_levy(500.0))
    triage = reconcile((), derive_system_items(flagged, BASE_TIME), flagged)
    triage = (*triage, make_triage_item(Domain.LEVY, "levy_variance", triage_id="user-levy"))

    cleared = replace(flagged, levy=make_levy(0.0))
    reconciled = reconcile(triage, derive_system_items(cleared, BASE_TIME), cleared)

    assert reconciled == ()


def test_user_flags_on_settled_items_are_dropped() -> None:
    record = make_reconciled_record()
    triage = (
        make_triage_item(Domain.EXPENSES, "exp_0"),
        make_triage_item(Domain.BALANCE_SHEET, "Cash_at_Bank|Admin"),
    )

    assert reconcile(triage, (), record) == ()


def test_user_flags_on_unknown_items_survive() -> None:
    record = make_reconciled_record()
    flag = make_triage_item(Domain.COMPLIANCE, "insurance", title="Policy lapsed")

    assert reconcile((flag,), (), record) == (flag,)


def test_existing_entry_wins_over_new_system_item() -> None:
    record = make_reconciled_record(expense_runs=(make_run(make_expense("GL-1", "FAIL")),))
    user_flag = make_triage_item(Domain.EXPENSES, "exp_0", title="Already flagged")

    reconciled = reconcile((user_flag,), derive_system_items(record, BASE_TIME), record)

    assert reconciled == (user_flag,)


def test_supplemental_run_resolves_expense_flag() -> None:
    failing = make_reconciled_record(expense_runs=(make_run(make_expense("g1", "FAIL")),))
    triage = reconcile((), derive_system_items(failing, BASE_TIME), failing)

    fixed = replace(
        failing,
        expense_runs=(
            *failing.expense_runs,
            make_run(make_expense("g1", "PASS"), run_id="r2", run_type=RunType.ADDITIONAL),
        ),
    )

    assert reconcile(triage, derive_system_items(fixed, BASE_TIME), fixed) == ()


def test_missing_variances_count_as_resolved_but_missing_sections_do_not() -> None:
    record = make_record()

    keys = resolved_keys(record)

    assert keys == {"levy:levy_variance", "compliance:gst_variance"}


def test_resolved_keys_cover_clean_lines_and_expenses() -> None:
    record = make_reconciled_record(
        balance_sheet=BalanceSheetSection(
            lines=(make_line(), make_line("Levies Receivable", status="VARIANCE")),
        ),
        compliance=make_compliance(12.0),
    )

    keys = resolved_keys(record)

    assert "balance_sheet:Cash_at_Bank|Admin" in keys
    assert "balance_sheet:Levies_Receivable|Admin" not in keys
    assert "expenses:exp_0" in keys
    assert "compliance:gst_variance" not in keys


def test_flag_item_replaces_same_key() -> None:
    first = make_triage_item(Domain.EXPENSES, "exp_3", triage_id="a", title="first")
    other = make_triage_item(Domain.LEVY, "levy_variance", triage_id="b")
    second = make_triage_item(Domain.EXPENSES, "exp_3", triage_id="c", title="second")

    triage = flag_item(flag_item(flag_item((), first), other), second)

    assert [item.id for item in triage] == ["b", "c"]


def test_remove_item_by_id() -> None:
    keep = make_triage_item(Domain.LEVY, "levy_variance", triage_id="keep")
    drop = make_triage_item(Domain.EXPENSES, "exp_0", triage_id="drop")

    assert remove_item((keep, drop), "drop") == (keep,)
    assert remove_item((keep,), "missing") == (keep,)
