"""Error hierarchy for review orchestration."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable


class ReviewError(RuntimeError):
    """Base class for review orchestration errors."""


class ValidationError(ReviewError):
    """Caller input rejected before any external call (fix the input, then retry)."""


class EmptyTargetError(ValidationError):
    """A targeted re-verify was requested but nothing is outstanding."""


class OracleError(ReviewError):
    """An oracle invocation failed or timed out; retrying the phase is safe."""

    retryable = True


class OracleOutputError(OracleError):
    """The oracle answered without the top-level keys its call must produce."""

    def __init__(self, call: str, missing: Iterable[str]) -> None:
        self.call = call
        self.missing = tuple(sorted(missing))
        super().__init__(f"{call} output missing required keys: {', '.join(self.missing)}")


class MergeConflictError(ReviewError):
    """Phase output touched a section it does not own."""

    retryable = False

    def __init__(self, call: str, unexpected: Iterable[str]) -> None:
        self.call = call
        self.unexpected = tuple(sorted(unexpected))
        super().__init__(f"{call} output has unexpected keys: {', '.join(self.unexpected)}")


class RecordNotFoundError(ReviewError):
    def __init__(self, record_id: str) -> None:
        self.record_id = record_id
        super().__init__(f"Review record not found: {record_id}")
