"""Application orchestration entry points."""

from __future__ import annotations

import asyncio
from logging import getLogger
from pathlib import Path
from typing import TYPE_CHECKING

from stratareview.adapters.evidence import build_evidence_store
from stratareview.adapters.oracle import HttpOracle
from stratareview.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReviewUnitOfWork,
    is_started,
    startup,
)
from stratareview.config import get_review_config
from stratareview.domain.review import ReviewService

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stratareview.config import ReviewConfig
    from stratareview.domain.model import (
        Domain,
        EvidenceBatch,
        ResolutionKind,
        ReviewPhase,
        ReviewRecord,
        Severity,
        Target,
    )
    from stratareview.domain.ports import EvidenceStore, Oracle
    from stratareview.domain.review import ReverifyResult
    from stratareview.domain.review.service import UnitOfWorkFactory

log = getLogger(__name__)


def build_review_service(
    *,
    oracle: Oracle | None = None,
    evidence_store: EvidenceStore | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    review_config: ReviewConfig | None = None,
) -> ReviewService:
    """Wire the review service to the configured adapters."""

    if unit_of_work_factory is None:
        if not is_started():
            startup()
        unit_of_work_factory = SqlAlchemyReviewUnitOfWork
    store = evidence_store or build_evidence_store()
    config = review_config or get_review_config()
    return ReviewService(
        oracle=oracle or HttpOracle(evidence_store=store),
        evidence_store=store,
        unit_of_work_factory=unit_of_work_factory,
        phase_timeout=config.phase_timeout_seconds,
    )


def create_review(name: str, *, service: ReviewService | None = None) -> ReviewRecord:
    return (service or build_review_service()).create_review(name)


def get_review(record_id: str, *, service: ReviewService | None = None) -> ReviewRecord:
    return (service or build_review_service()).get_review(record_id)


def list_reviews(*, service: ReviewService | None = None) -> list[str]:
    return (service or build_review_service()).list_reviews()


def delete_review(record_id: str, *, service: ReviewService | None = None) -> None:
    (service or build_review_service()).delete_review(record_id)


def submit_evidence(
    record_id: str,
    paths: Sequence[Path | str],
    *,
    batch: EvidenceBatch | None = None,
    service: ReviewService | None = None,
) -> ReviewRecord:
    """Read evidence files from disk and attach them to the review."""

    files = [(Path(path).name, Path(path).read_bytes()) for path in paths]
    effective = service or build_review_service()
    return asyncio.run(effective.submit_evidence(record_id, files, batch=batch))


def next_phase(record_id: str, *, service: ReviewService | None = None) -> ReviewPhase:
    effective = service or build_review_service()
    return effective.next_phase(effective.get_review(record_id))


def run_phase(
    record_id: str,
    phase: ReviewPhase | str | None = None,
    *,
    service: ReviewService | None = None,
) -> ReviewRecord:
    """Run ``phase`` (default: whatever the record needs next) and return the record."""

    effective = service or build_review_service()
    if phase is None:
        phase = effective.next_phase(effective.get_review(record_id))
    log.info("Running %s for review %s", phase, record_id)
    record = asyncio.run(effective.run_phase(record_id, phase))
    if record.failure is not None:
        log.warning("Phase %s failed: %s", record.failure.phase, record.failure.message)
    return record


def list_targets(record_id: str, *, service: ReviewService | None = None) -> list[Target]:
    effective = service or build_review_service()
    record = effective.get_review(record_id)
    return effective.build_targets(record, record.triage)


def run_targeted_reverify(
    record_id: str, *, service: ReviewService | None = None
) -> ReverifyResult:
    effective = service or build_review_service()
    return asyncio.run(effective.run_targeted_reverify(record_id))


def flag_item(
    record_id: str,
    *,
    domain: Domain,
    item_id: str,
    title: str,
    comment: str = "",
    severity: Severity | None = None,
    service: ReviewService | None = None,
) -> ReviewRecord:
    effective = service or build_review_service()
    if severity is None:
        return effective.flag_item(
            record_id, domain=domain, item_id=item_id, title=title, comment=comment
        )
    return effective.flag_item(
        record_id,
        domain=domain,
        item_id=item_id,
        title=title,
        comment=comment,
        severity=severity,
    )


def unflag_item(
    record_id: str, triage_id: str, *, service: ReviewService | None = None
) -> ReviewRecord:
    return (service or build_review_service()).unflag_item(record_id, triage_id)


def resolve_item(
    record_id: str,
    *,
    domain: Domain,
    item_id: str,
    kind: ResolutionKind,
    comment: str,
    resolved_by: str | None = None,
    service: ReviewService | None = None,
) -> ReviewRecord:
    return (service or build_review_service()).resolve_item(
        record_id,
        domain=domain,
        item_id=item_id,
        kind=kind,
        comment=comment,
        resolved_by=resolved_by,
    )
