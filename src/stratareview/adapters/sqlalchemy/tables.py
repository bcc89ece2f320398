"""SQLAlchemy table metadata for stored review records."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Column, DateTime, MetaData, String, Table

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

metadata = MetaData()

# The record is stored as one JSON document; the scalar columns are copies kept
# for listing and ad hoc inspection.
review_record_table = Table(
    "review_record",
    metadata,
    Column("record_id", String(64), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("status", String(16), nullable=False),
    Column("created_at", DateTime(timezone=True), nullable=False),
    Column("updated_at", DateTime(timezone=True), nullable=False),
    Column("payload", JSON, nullable=False),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the review metadata."""

    log.info("Creating all tables")
    metadata.create_all(engine)
