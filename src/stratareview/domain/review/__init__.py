"""Review orchestration core: sequencing, merging, targets and triage."""

from __future__ import annotations

from .errors import (
    EmptyTargetError,
    MergeConflictError,
    OracleError,
    OracleOutputError,
    RecordNotFoundError,
    ReviewError,
    ValidationError,
)
from .expense_runs import effective_items, fold
from .merge import check_required_keys, merge_phase, merge_reverify
from .resolutions import find, upsert
from .sequencer import ensure_phase_allowed, next_phase
from .service import ReverifyResult, ReviewService, locked_context
from .targets import select_targets
from .triage import derive_system_items, reconcile, resolved_keys

__all__ = [
    "EmptyTargetError",
    "MergeConflictError",
    "OracleError",
    "OracleOutputError",
    "RecordNotFoundError",
    "ReverifyResult",
    "ReviewError",
    "ReviewService",
    "ValidationError",
    "check_required_keys",
    "derive_system_items",
    "effective_items",
    "ensure_phase_allowed",
    "find",
    "fold",
    "locked_context",
    "merge_phase",
    "merge_reverify",
    "next_phase",
    "reconcile",
    "resolved_keys",
    "select_targets",
    "upsert",
]
