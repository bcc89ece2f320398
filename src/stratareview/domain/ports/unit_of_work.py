"""Transaction boundary for review persistence.

A review operation opens one unit of work, reads and writes through
``repositories.records`` and calls ``commit()``. Leaving the ``with`` block without
committing discards everything, which is how a failed phase leaves no partial merge.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from stratareview.domain.ports.persistence import RecordRepository


@dataclass(slots=True, frozen=True)
class ReviewRepositories:
    records: RecordRepository


@runtime_checkable
class ReviewUnitOfWork(Protocol):
    @property
    def repositories(self) -> ReviewRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
