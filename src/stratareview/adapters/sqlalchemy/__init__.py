"""SQLAlchemy adapter package for stratareview."""

from __future__ import annotations

from .codec import dump_record, load_record
from .repositories import SqlAlchemyRecordRepository
from .tables import create_all_tables, metadata, review_record_table
from .unit_of_work import (
    SqlAlchemyReviewUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyRecordRepository",
    "SqlAlchemyReviewUnitOfWork",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "dump_record",
    "is_started",
    "load_record",
    "metadata",
    "review_record_table",
    "shutdown",
    "startup",
]
