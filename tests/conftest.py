from __future__ import annotations

import os
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.engine import Engine  # noqa: TC002

from stratareview.adapters.memory import InMemoryReviewStore, unit_of_work_factory
from stratareview.adapters.sqlalchemy.tables import create_all_tables
from stratareview.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReviewUnitOfWork,
    engine_for,
    shutdown,
    startup,
)
from stratareview.domain.review import ReviewService
from tests.helpers.reviews import FakeEvidenceStore, FakeOracle, FixedClock, SequentialIds

os.environ.setdefault("DATABASE_URI", "sqlite+pysqlite:///:memory:")

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator


@pytest.fixture
def sqlite_engine() -> Iterator[Engine]:
    engine = engine_for("sqlite+pysqlite:///:memory:")
    create_all_tables(engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture
def sqlite_unit_of_work(
    sqlite_engine: Engine,
) -> Iterator[Callable[[], SqlAlchemyReviewUnitOfWork]]:
    startup(engine=sqlite_engine, force=True)

    def factory() -> SqlAlchemyReviewUnitOfWork:
        return SqlAlchemyReviewUnitOfWork()

    try:
        yield factory
    finally:
        shutdown()


@pytest.fixture
def review_store() -> InMemoryReviewStore:
    return InMemoryReviewStore()


@pytest.fixture
def oracle() -> FakeOracle:
    return FakeOracle()


@pytest.fixture
def evidence_store() -> FakeEvidenceStore:
    return FakeEvidenceStore()


@pytest.fixture
def review_service(
    oracle: FakeOracle,
    evidence_store: FakeEvidenceStore,
    review_store: InMemoryReviewStore,
) -> ReviewService:
    return ReviewService(
        oracle=oracle,
        evidence_store=evidence_store,
        unit_of_work_factory=unit_of_work_factory(review_store),
        clock=FixedClock(),
        id_factory=SequentialIds(),
    )
