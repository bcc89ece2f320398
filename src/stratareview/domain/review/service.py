"""Review orchestration: run phases against the oracle and keep the record consistent."""

from __future__ import annotations

import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, replace
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from stratareview.domain.model import (
    EvidenceBatch,
    EvidenceFile,
    OracleCall,
    PhaseFailure,
    ReverifyAnnotation,
    ReviewPhase,
    ReviewRecord,
    ReviewStatus,
    Severity,
    TriageItem,
    TriageSource,
    UserResolution,
    item_key,
)

from . import resolutions
from . import triage as triage_ops
from .errors import (
    EmptyTargetError,
    MergeConflictError,
    OracleError,
    RecordNotFoundError,
    ValidationError,
)
from .expense_runs import has_initial_run
from .merge import PHASE_CALLS, merge_phase, merge_reverify
from .sequencer import ensure_phase_allowed, next_phase
from .targets import select_targets

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Mapping, Sequence

    from stratareview.domain.model import (
        Domain,
        Payload,
        ResolutionKind,
        ResolutionRow,
        Target,
    )
    from stratareview.domain.ports import EvidenceStore, Oracle, ReviewUnitOfWork

log = getLogger(__name__)

# locked-context key listing the evidence refs that arrived after intake
ADDITIONAL_EVIDENCE_KEY = "additional_evidence_refs"

type UnitOfWorkFactory = Callable[[], ReviewUnitOfWork]


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_id() -> str:
    return uuid4().hex


@dataclass(slots=True, frozen=True)
class ReverifyResult:
    """Outcome of a targeted re-verify; inspect ``record.status`` for failures."""

    record: ReviewRecord
    resolution_table: tuple[ResolutionRow, ...]
    annotation: ReverifyAnnotation


def locked_context(record: ReviewRecord) -> Payload:
    """Snapshot of intake output every downstream phase works from."""

    if record.intake is None:
        return {}
    return {
        "document_register": [dict(row) for row in record.intake.document_register],
        "intake_summary": dict(record.intake.intake_summary),
        **record.intake.extracts,
    }


class ReviewService:
    """Drives review records through their phases.

    Phase failures are recorded on the returned record rather than raised;
    :class:`ValidationError` is raised for requests that must be corrected first.
    """

    def __init__(
        self,
        *,
        oracle: Oracle,
        evidence_store: EvidenceStore,
        unit_of_work_factory: UnitOfWorkFactory,
        phase_timeout: float | None = None,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._oracle = oracle
        self._evidence_store = evidence_store
        self._uow_factory = unit_of_work_factory
        self._phase_timeout = phase_timeout
        self._clock = clock
        self._id_factory = id_factory
        self._busy: set[str] = set()

    # -- queries ---------------------------------------------------------------

    def get_review(self, record_id: str) -> ReviewRecord:
        with self._uow_factory() as uow:
            record = uow.repositories.records.get(record_id)
        if record is None:
            raise RecordNotFoundError(record_id)
        return record

    def list_reviews(self) -> list[str]:
        with self._uow_factory() as uow:
            return uow.repositories.records.list_ids()

    @staticmethod
    def next_phase(record: ReviewRecord) -> ReviewPhase:
        return next_phase(record)

    @staticmethod
    def build_targets(record: ReviewRecord, triage: Sequence[TriageItem] = ()) -> list[Target]:
        return select_targets(record, triage)

    def reconcile_triage(
        self,
        record: ReviewRecord,
        existing: Iterable[TriageItem] | None = None,
    ) -> tuple[TriageItem, ...]:
        return triage_ops.reconcile(
            record.triage if existing is None else existing,
            triage_ops.derive_system_items(record, self._clock()),
            record,
        )

    # -- lifecycle -------------------------------------------------------------

    def create_review(self, name: str, *, record_id: str | None = None) -> ReviewRecord:
        if not name.strip():
            raise ValidationError("Review name must not be blank")
        now = self._clock()
        record = ReviewRecord(
            record_id=record_id or self._id_factory(),
            name=name.strip(),
            created_at=now,
            updated_at=now,
        )
        with self._uow_factory() as uow:
            uow.repositories.records.add(record)
            uow.commit()
        log.info("Created review %s (%s)", record.record_id, record.name)
        return record

    def delete_review(self, record_id: str) -> None:
        self._ensure_idle(record_id)
        with self._uow_factory() as uow:
            if not uow.repositories.records.remove(record_id):
                raise RecordNotFoundError(record_id)
            uow.commit()
        log.info("Deleted review %s", record_id)

    async def submit_evidence(
        self,
        record_id: str,
        files: Iterable[tuple[str, bytes]],
        *,
        batch: EvidenceBatch | None = None,
    ) -> ReviewRecord:
        """Store evidence blobs and attach their references to the record.

        Without an explicit ``batch``, evidence submitted after the initial
        expense run counts as additional evidence. Blobs are uploaded first; the
        record is re-read and updated afterwards under the busy guard, so a phase
        that finished during the upload is never overwritten.
        """

        pending = list(files)
        for name, data in pending:
            if not data:
                msg = f"Evidence file {name!r} is empty"
                raise ValidationError(msg)
        self._ensure_idle(record_id)
        self.get_review(record_id)

        stored = [
            (await self._evidence_store.store(data, name=name), name) for name, data in pending
        ]

        with self._exclusive(record_id):
            record = self.get_review(record_id)
            effective_batch = batch or (
                EvidenceBatch.ADDITIONAL
                if has_initial_run(record.expense_runs)
                else EvidenceBatch.INITIAL
            )
            known = {entry.ref for entry in record.evidence}
            added: list[EvidenceFile] = []
            for ref, name in stored:
                if ref in known:
                    log.debug("Evidence %s already attached to %s", name, record_id)
                    continue
                known.add(ref)
                added.append(
                    EvidenceFile(
                        ref=ref, name=name, batch=effective_batch, uploaded_at=self._clock()
                    )
                )
            if not added:
                return record
            updated = replace(
                record, evidence=(*record.evidence, *added), updated_at=self._clock()
            )
            self._save(updated)
        log.info("Attached %d %s evidence file(s) to %s", len(added), effective_batch, record_id)
        return updated

    # -- phases ----------------------------------------------------------------

    async def run_phase(self, record_id: str, phase: ReviewPhase | str) -> ReviewRecord:
        """Run ``phase`` for the record and return the stored result.

        Out-of-order requests raise :class:`ValidationError` before any oracle
        call; oracle and merge failures come back as a failed record with its
        sections unchanged.
        """

        phase = ReviewPhase(phase)
        if phase is ReviewPhase.TARGETED_REVERIFY:
            result = await self.run_targeted_reverify(record_id)
            return result.record

        with self._exclusive(record_id):
            record = self.get_review(record_id)
            ensure_phase_allowed(record, phase)
            context, refs, consumed_refs = self._phase_inputs(record, phase)
            log.info("Starting %s for review %s", phase, record_id)
            try:
                outputs = await self._invoke_calls(
                    PHASE_CALLS[phase], context=context, evidence_refs=refs
                )
                merged = merge_phase(
                    record,
                    phase,
                    outputs,
                    now=self._clock(),
                    evidence_refs=consumed_refs,
                    run_id_factory=self._id_factory,
                )
            except (OracleError, MergeConflictError) as exc:
                return self._record_failure(record, phase, exc)

            merged = replace(merged, triage=self.reconcile_triage(merged))
            self._save(merged)
            log.info(
                "Finished %s for review %s: %d triage item(s) open",
                phase,
                record_id,
                len(merged.triage),
            )
            return merged

    async def run_targeted_reverify(self, record_id: str) -> ReverifyResult:
        """Re-verify only outstanding items; the result lands in ``record.reverify``."""

        with self._exclusive(record_id):
            record = self.get_review(record_id)
            ensure_phase_allowed(record, ReviewPhase.TARGETED_REVERIFY)
            targets = select_targets(record, record.triage)
            if not targets:
                raise EmptyTargetError(
                    "No items to re-verify; flag an item or wait for outstanding findings"
                )
            log.info(
                "Starting targeted re-verify for review %s: %d target(s)", record_id, len(targets)
            )
            try:
                outputs = await self._invoke_calls(
                    (OracleCall.TARGETED_REVERIFY,),
                    context={
                        **locked_context(record),
                        ADDITIONAL_EVIDENCE_KEY: list(
                            record.evidence_refs(EvidenceBatch.ADDITIONAL)
                        ),
                    },
                    evidence_refs=record.evidence_refs(),
                    extra_targets=targets,
                )
                merged = merge_reverify(
                    record, targets, outputs[OracleCall.TARGETED_REVERIFY], now=self._clock()
                )
            except (OracleError, MergeConflictError) as exc:
                failed = self._record_failure(record, ReviewPhase.TARGETED_REVERIFY, exc)
                return ReverifyResult(
                    record=failed,
                    resolution_table=(),
                    annotation=failed.reverify or ReverifyAnnotation(),
                )

            merged = replace(merged, triage=self.reconcile_triage(merged))
            self._save(merged)
            annotation = merged.reverify or ReverifyAnnotation()
            log.info(
                "Finished targeted re-verify for review %s: %d row(s)",
                record_id,
                len(annotation.resolution_table),
            )
            return ReverifyResult(
                record=merged,
                resolution_table=annotation.resolution_table,
                annotation=annotation,
            )

    # -- triage and resolutions ------------------------------------------------

    def flag_item(
        self,
        record_id: str,
        *,
        domain: Domain,
        item_id: str,
        title: str,
        comment: str = "",
        severity: Severity = Severity.MEDIUM,
    ) -> ReviewRecord:
        if not item_id.strip() or not title.strip():
            raise ValidationError("Flagged items need an item id and a title")
        self._ensure_idle(record_id)
        record = self.get_review(record_id)
        item = TriageItem(
            id=self._id_factory(),
            domain=domain,
            item_id=item_id.strip(),
            title=title.strip(),
            severity=severity,
            source=TriageSource.USER,
            comment=comment.strip(),
            timestamp=self._clock(),
        )
        updated = replace(
            record, triage=triage_ops.flag_item(record.triage, item), updated_at=self._clock()
        )
        self._save(updated)
        log.info("Flagged %s on review %s", item.key, record_id)
        return updated

    def unflag_item(self, record_id: str, triage_id: str) -> ReviewRecord:
        self._ensure_idle(record_id)
        record = self.get_review(record_id)
        remaining = triage_ops.remove_item(record.triage, triage_id)
        if len(remaining) == len(record.triage):
            msg = f"No triage item {triage_id!r} on review {record_id}"
            raise ValidationError(msg)
        updated = replace(record, triage=remaining, updated_at=self._clock())
        self._save(updated)
        return updated

    def resolve_item(
        self,
        record_id: str,
        *,
        domain: Domain,
        item_id: str,
        kind: ResolutionKind,
        comment: str,
        resolved_by: str | None = None,
    ) -> ReviewRecord:
        comment = comment.strip()
        if not comment:
            raise ValidationError("A resolution comment is required")
        self._ensure_idle(record_id)
        record = self.get_review(record_id)
        key = item_key(domain, item_id)
        resolution = UserResolution(
            item_key=key,
            kind=kind,
            comment=comment,
            resolved_at=self._clock(),
            resolved_by=resolved_by,
        )
        updated = replace(
            record,
            resolutions=resolutions.upsert(record.resolutions, key, resolution),
            updated_at=self._clock(),
        )
        self._save(updated)
        log.info("Recorded %s for %s on review %s", kind, key, record_id)
        return updated

    # -- internals -------------------------------------------------------------

    def _ensure_idle(self, record_id: str) -> None:
        if record_id in self._busy:
            msg = f"A phase is already running for review {record_id}"
            raise ValidationError(msg)

    @contextmanager
    def _exclusive(self, record_id: str) -> Iterator[None]:
        """Mark the record busy for the block; a second request fails fast instead of queueing.

        Check and mark happen without an ``await`` in between, so on one event loop
        no other coroutine can slip in.
        """

        self._ensure_idle(record_id)
        self._busy.add(record_id)
        try:
            yield
        finally:
            self._busy.discard(record_id)

    def _phase_inputs(
        self, record: ReviewRecord, phase: ReviewPhase
    ) -> tuple[Payload, tuple[str, ...], tuple[str, ...]]:
        """Return (locked context, refs sent to the oracle, refs the merge consumes)."""

        initial_refs = record.evidence_refs(EvidenceBatch.INITIAL)
        if phase is ReviewPhase.INTAKE:
            return {}, initial_refs, initial_refs
        if phase is ReviewPhase.RECONCILIATION:
            return locked_context(record), initial_refs, initial_refs
        pending = tuple(entry.ref for entry in record.pending_additional_evidence())
        context = {**locked_context(record), ADDITIONAL_EVIDENCE_KEY: list(pending)}
        return context, (*initial_refs, *pending), pending

    async def _invoke_calls(
        self,
        calls: Sequence[OracleCall],
        *,
        context: Payload,
        evidence_refs: Sequence[str],
        extra_targets: Sequence[Target] = (),
    ) -> dict[OracleCall, Mapping[str, Any]]:
        """Invoke every call concurrently and wait for all of them.

        Raises the first :class:`OracleError` once all calls have settled so no
        sibling call is left running.
        """

        async def invoke(call: OracleCall) -> Mapping[str, Any]:
            return await self._oracle.invoke(
                call,
                locked_context=context,
                evidence_refs=evidence_refs,
                extra_targets=extra_targets,
            )

        try:
            async with asyncio.timeout(self._phase_timeout):
                results = await asyncio.gather(
                    *(invoke(call) for call in calls), return_exceptions=True
                )
        except TimeoutError as exc:
            msg = f"Oracle did not answer within {self._phase_timeout}s"
            raise OracleError(msg) from exc

        outputs: dict[OracleCall, Mapping[str, Any]] = {}
        failures: list[OracleError] = []
        for call, result in zip(calls, results, strict=True):
            if isinstance(result, OracleError):
                log.warning("Oracle call %s failed: %s", call, result)
                failures.append(result)
            elif isinstance(result, BaseException):
                raise result
            else:
                outputs[call] = result
        if failures:
            raise failures[0]
        return outputs

    def _record_failure(
        self, record: ReviewRecord, phase: ReviewPhase, exc: OracleError | MergeConflictError
    ) -> ReviewRecord:
        retryable = exc.retryable
        if retryable:
            log.warning("%s failed for review %s: %s", phase, record.record_id, exc)
        else:
            log.error("%s failed for review %s: %s", phase, record.record_id, exc)
        now = self._clock()
        failed = replace(
            record,
            status=ReviewStatus.FAILED,
            failure=PhaseFailure(
                phase=phase,
                kind=type(exc).__name__,
                message=str(exc),
                retryable=retryable,
                failed_at=now,
            ),
            updated_at=now,
        )
        self._save(failed)
        return failed

    def _save(self, record: ReviewRecord) -> None:
        with self._uow_factory() as uow:
            uow.repositories.records.update(record)
            uow.commit()
