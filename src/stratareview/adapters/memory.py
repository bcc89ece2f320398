"""In-memory record store for tests and throwaway sessions.

Records are frozen, but their payload mappings are not, so everything crossing the
repository boundary is deep-copied: callers never share state with the store.
"""

from __future__ import annotations

from copy import deepcopy
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Literal

from stratareview.domain.ports.unit_of_work import ReviewRepositories
from stratareview.domain.review.errors import RecordNotFoundError

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from stratareview.domain.model import ReviewRecord


@dataclass(slots=True)
class InMemoryReviewStore:
    """Committed state shared by every unit of work created from it."""

    records: dict[str, ReviewRecord] = field(default_factory=dict)


class InMemoryRecordRepository:
    def __init__(self, records: dict[str, ReviewRecord]) -> None:
        self._records = records

    def get(self, record_id: str) -> ReviewRecord | None:
        record = self._records.get(record_id)
        return deepcopy(record) if record is not None else None

    def add(self, record: ReviewRecord) -> None:
        if record.record_id in self._records:
            msg = f"Review record already exists: {record.record_id}"
            raise ValueError(msg)
        self._records[record.record_id] = deepcopy(record)

    def update(self, record: ReviewRecord) -> None:
        if record.record_id not in self._records:
            raise RecordNotFoundError(record.record_id)
        self._records[record.record_id] = deepcopy(record)

    def remove(self, record_id: str) -> bool:
        return self._records.pop(record_id, None) is not None

    def list_ids(self) -> list[str]:
        return sorted(self._records)


class InMemoryUnitOfWork:
    """Stages repository writes and publishes them to the store on commit."""

    def __init__(self, store: InMemoryReviewStore) -> None:
        self._store = store
        self._working: dict[str, ReviewRecord] = {}
        self._repositories: ReviewRepositories | None = None
        self.committed = False

    def __enter__(self) -> InMemoryUnitOfWork:
        self._working = dict(self._store.records)
        self._repositories = ReviewRepositories(records=InMemoryRecordRepository(self._working))
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        if exc_type is not None:
            self.rollback()
        self._repositories = None
        return False

    @property
    def repositories(self) -> ReviewRepositories:
        if self._repositories is None:
            raise RuntimeError("Unit of work used outside its context manager")
        return self._repositories

    def commit(self) -> None:
        self._store.records = dict(self._working)
        self.committed = True

    def rollback(self) -> None:
        self._working.clear()
        self._working.update(self._store.records)


def unit_of_work_factory(store: InMemoryReviewStore) -> Callable[[], InMemoryUnitOfWork]:
    def factory() -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(store)

    return factory
