"""Evidence store adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

from stratareview.config.evidence import get_evidence_config

from .filesystem import FilesystemEvidenceStore
from .http import HttpEvidenceStore
from .refs import (
    EvidenceNotFoundError,
    EvidenceStoreError,
    content_digest,
    evidence_name,
    make_ref,
    split_ref,
)

if TYPE_CHECKING:
    from stratareview.config.evidence import EvidenceConfig
    from stratareview.domain.ports import EvidenceStore


def build_evidence_store(config: EvidenceConfig | None = None) -> EvidenceStore:
    """Return the HTTP store when a base URL is configured, else the filesystem one."""

    effective = config or get_evidence_config()
    if effective.base_url and effective.resilience is not None:
        return HttpEvidenceStore(resilience=effective.resilience)
    return FilesystemEvidenceStore(root=effective.root)


__all__ = [
    "EvidenceNotFoundError",
    "EvidenceStoreError",
    "FilesystemEvidenceStore",
    "HttpEvidenceStore",
    "build_evidence_store",
    "content_digest",
    "evidence_name",
    "make_ref",
    "split_ref",
]
