"""Fold the append-only expense run log into one effective view."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from stratareview.domain.model import ExpenseItem, ExpenseRun, ReviewRecord

type ItemKey = str | tuple[str, int, int]


def item_identity(item: ExpenseItem, run_index: int, position: int) -> ItemKey:
    if item.gl_id:
        return item.gl_id
    return ("_", run_index, position)


def fold(runs: Iterable[ExpenseRun]) -> list[ExpenseItem]:
    """Return the effective items of ``runs`` (oldest first).

    A later run replaces an earlier item with the same identity in place, so the
    row keeps its original position; unseen identities are appended.
    """

    effective: list[ExpenseItem] = []
    position_by_key: dict[ItemKey, int] = {}
    for run_index, run in enumerate(runs):
        for position, item in enumerate(run.items):
            key = item_identity(item, run_index, position)
            existing = position_by_key.get(key)
            if existing is not None:
                effective[existing] = item
            else:
                position_by_key[key] = len(effective)
                effective.append(item)
    return effective


def effective_items(record: ReviewRecord) -> list[ExpenseItem]:
    return fold(record.expense_runs)


def expense_item_id(position: int) -> str:
    return f"exp_{position}"


def has_initial_run(runs: Sequence[ExpenseRun]) -> bool:
    return any(run.run_id == "initial" for run in runs)
