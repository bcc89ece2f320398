"""Evidence store configuration values."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .http_resilience import CacheConfig, ResilienceConfig
from .storage import StorageConfig, get_storage_config


@dataclass(frozen=True, slots=True)
class EvidenceConfig:
    """Where evidence blobs live.

    ``base_url`` selects the HTTP object store; otherwise blobs are kept under
    ``root`` on the local filesystem.
    """

    root: Path
    base_url: str | None = None
    resilience: ResilienceConfig | None = None


def get_evidence_config(*, storage: StorageConfig | None = None) -> EvidenceConfig:
    storage_config = storage or get_storage_config()
    base_url = os.getenv("EVIDENCE_BASE_URL")
    if not base_url:
        return EvidenceConfig(root=storage_config.evidence_path(ensure=False))
    base_url = base_url.rstrip("/")
    api_key = os.getenv("EVIDENCE_API_KEY")
    return EvidenceConfig(
        root=storage_config.evidence_path(ensure=False),
        base_url=base_url,
        resilience=ResilienceConfig(
            name="evidence",
            base_url=base_url,
            # blobs are content addressed and never change once written
            cache=CacheConfig(
                backend="sqlite",
                sqlite_path=str(storage_config.http_cache_path()),
            ),
            default_headers={"Authorization": f"Bearer {api_key}"} if api_key else None,
        ),
    )
