"""Domain port definitions for adapters."""

from __future__ import annotations

from .evidence import EvidenceStore
from .oracle import Oracle
from .persistence import RecordRepository
from .unit_of_work import ReviewRepositories, ReviewUnitOfWork

__all__ = [
    "EvidenceStore",
    "Oracle",
    "RecordRepository",
    "ReviewRepositories",
    "ReviewUnitOfWork",
]
