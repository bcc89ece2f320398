"""Ports for persisting review records."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from stratareview.domain.model import ReviewRecord


@runtime_checkable
class RecordRepository(Protocol):
    """Record store keyed by record id.

    Reads return snapshots: mutating anything reachable from a returned record
    must never affect the stored state.
    """

    def get(self, record_id: str) -> ReviewRecord | None: ...

    def add(self, record: ReviewRecord) -> None: ...

    def update(self, record: ReviewRecord) -> None: ...

    def remove(self, record_id: str) -> bool: ...

    def list_ids(self) -> list[str]: ...


__all__ = ["RecordRepository"]
