"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import delete, insert, select, update

from stratareview.domain.review.errors import RecordNotFoundError

from .codec import dump_record, load_record
from .tables import review_record_table

if TYPE_CHECKING:
    from sqlalchemy.engine import CursorResult
    from sqlalchemy.orm import Session

    from stratareview.domain.model import ReviewRecord


def _row_values(record: ReviewRecord) -> dict[str, Any]:
    return {
        "name": record.name,
        "status": str(record.status),
        "created_at": record.created_at,
        "updated_at": record.updated_at,
        "payload": dump_record(record),
    }


class SqlAlchemyRecordRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, record_id: str) -> ReviewRecord | None:
        stmt = select(review_record_table.c.payload).where(
            review_record_table.c.record_id == record_id
        )
        payload = self.session.execute(stmt).scalar_one_or_none()
        # each read decodes a fresh object graph, so no caller shares state
        return load_record(payload) if payload is not None else None

    def add(self, record: ReviewRecord) -> None:
        stmt = insert(review_record_table).values(
            record_id=record.record_id, **_row_values(record)
        )
        self.session.execute(stmt)

    def update(self, record: ReviewRecord) -> None:
        stmt = (
            update(review_record_table)
            .where(review_record_table.c.record_id == record.record_id)
            .values(**_row_values(record))
        )
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        if result.rowcount == 0:
            raise RecordNotFoundError(record.record_id)

    def remove(self, record_id: str) -> bool:
        stmt = delete(review_record_table).where(review_record_table.c.record_id == record_id)
        result = cast("CursorResult[Any]", self.session.execute(stmt))
        return result.rowcount > 0

    def list_ids(self) -> list[str]:
        stmt = select(review_record_table.c.record_id).order_by(
            review_record_table.c.created_at, review_record_table.c.record_id
        )
        return list(self.session.execute(stmt).scalars())
