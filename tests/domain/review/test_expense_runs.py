from __future__ import annotations

from stratareview.domain.model import RunType
from stratareview.domain.review.expense_runs import (
    effective_items,
    expense_item_id,
    fold,
    has_initial_run,
)
from tests.helpers.reviews import make_expense, make_record, make_run


def test_fold_overwrites_repeated_id_in_place() -> None:
    first = make_expense("g1", "FAIL")
    second = make_expense("g1", "PASS")
    runs = [make_run(first), make_run(second, run_id="r2", run_type=RunType.ADDITIONAL)]

    assert fold(runs) == [second]


def test_fold_keeps_original_row_position() -> None:
    runs = [
        make_run(make_expense("a", "FAIL"), make_expense("b", "PASS"), make_expense("c", "FAIL")),
        make_run(
            make_expense("a", "PASS"),
            make_expense("d", "RISK_FLAG"),
            run_id="r2",
            run_type=RunType.ADDITIONAL,
        ),
    ]

    folded = fold(runs)

    assert [item.gl_id for item in folded] == ["a", "b", "c", "d"]
    assert folded[0].status == "PASS"


def test_fold_treats_items_without_id_as_distinct() -> None:
    anonymous = make_expense(None, "FAIL")
    runs = [
        make_run(anonymous, anonymous),
        make_run(anonymous, run_id="r2", run_type=RunType.ADDITIONAL),
    ]

    assert len(fold(runs)) == 3


def test_fold_of_no_runs_is_empty() -> None:
    assert fold([]) == []


def test_effective_items_reads_record_runs() -> None:
    record = make_record(
        expense_runs=(
            make_run(make_expense("g1", "FAIL")),
            make_run(make_expense("g1", "PASS"), run_id="r2"),
        )
    )

    assert [item.status for item in effective_items(record)] == ["PASS"]


def test_has_initial_run_checks_run_ids() -> None:
    assert not has_initial_run([])
    assert not has_initial_run([make_run(run_id="r2")])
    assert has_initial_run([make_run(run_id="r2"), make_run()])


def test_expense_item_id_is_positional() -> None:
    assert expense_item_id(0) == "exp_0"
    assert expense_item_id(12) == "exp_12"
