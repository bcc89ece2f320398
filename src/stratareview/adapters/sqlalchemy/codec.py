"""JSON document codec for review records."""

from __future__ import annotations

from typing import Any

from pydantic import TypeAdapter

from stratareview.domain.model import ReviewRecord

_RECORD_ADAPTER: TypeAdapter[ReviewRecord] = TypeAdapter(ReviewRecord)


def dump_record(record: ReviewRecord) -> dict[str, Any]:
    return _RECORD_ADAPTER.dump_python(record, mode="json")


def load_record(payload: Any) -> ReviewRecord:
    return _RECORD_ADAPTER.validate_python(payload)
