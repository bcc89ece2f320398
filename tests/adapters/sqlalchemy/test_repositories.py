from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from stratareview.adapters.sqlalchemy import (
    SqlAlchemyRecordRepository,
    dump_record,
    load_record,
    review_record_table,
)
from stratareview.domain.model import (
    Domain,
    EvidenceBatch,
    PhaseFailure,
    ResolutionKind,
    ReviewPhase,
    ReviewStatus,
    UserResolution,
)
from stratareview.domain.review import RecordNotFoundError
from stratareview.domain.review.merge import merge_reverify
from stratareview.domain.review.triage import derive_system_items
from tests.helpers.reviews import (
    BASE_TIME,
    make_evidence,
    make_levy,
    make_reconciled_record,
)

if TYPE_CHECKING:
    from collections.abc import Iterator

    from sqlalchemy.engine import Engine

    from stratareview.domain.model import ReviewRecord


@pytest.fixture
def session(sqlite_engine: Engine) -> Iterator[Session]:
    with Session(sqlite_engine) as session:
        yield session


def _rich_record() -> ReviewRecord:
    record = make_reconciled_record(
        levy=make_levy(500.0),
        evidence=(
            make_evidence(),
            make_evidence("late.pdf", batch=EvidenceBatch.ADDITIONAL, consumed=True),
        ),
        status=ReviewStatus.FAILED,
        failure=PhaseFailure(
            phase=ReviewPhase.TARGETED_REVERIFY,
            kind="OracleError",
            message="timeout",
            retryable=True,
            failed_at=BASE_TIME,
        ),
        resolutions=(
            UserResolution(
                item_key="levy:levy_variance",
                kind=ResolutionKind.FLAG,
                comment="Waiting on levy register",
                resolved_at=BASE_TIME,
            ),
        ),
    )
    annotated = merge_reverify(record, [], {"ai_attempt_updates": {"levy": 1}}, now=BASE_TIME)
    return replace(
        record,
        reverify=annotated.reverify,
        triage=derive_system_items(record, BASE_TIME),
    )


def test_codec_round_trips_rich_record() -> None:
    record = _rich_record()

    restored = load_record(dump_record(record))

    assert restored == record
    assert restored.evidence[1].batch is EvidenceBatch.ADDITIONAL
    assert restored.triage[0].domain is Domain.LEVY


def test_repository_add_and_get(session: Session) -> None:
    repo = SqlAlchemyRecordRepository(session)
    record = _rich_record()

    repo.add(record)
    session.commit()

    assert repo.get(record.record_id) == record
    assert repo.get("missing") is None
    status = session.execute(select(review_record_table.c.status)).scalar_one()
    assert status == "failed"


def test_repository_update_replaces_document(session: Session) -> None:
    repo = SqlAlchemyRecordRepository(session)
    record = make_reconciled_record()
    repo.add(record)

    updated = _rich_record()
    repo.update(updated)
    session.commit()

    stored = repo.get(record.record_id)
    assert stored is not None
    assert stored.levy == updated.levy


def test_repository_update_of_missing_record_raises(session: Session) -> None:
    repo = SqlAlchemyRecordRepository(session)

    with pytest.raises(RecordNotFoundError):
        repo.update(make_reconciled_record("ghost"))


def test_repository_remove_and_list(session: Session) -> None:
    repo = SqlAlchemyRecordRepository(session)
    repo.add(make_reconciled_record("b"))
    repo.add(make_reconciled_record("a"))
    session.commit()

    assert repo.list_ids() == ["a", "b"]
    assert repo.remove("a")
    assert not repo.remove("a")
    assert repo.list_ids() == ["b"]
