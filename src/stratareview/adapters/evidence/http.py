"""Evidence store backed by an HTTP object store (``PUT``/``GET /blobs/<digest>``)."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import httpx

from stratareview.adapters.http_resilience import ResilientClient, default_client_factory

from .refs import (
    EvidenceNotFoundError,
    EvidenceStoreError,
    content_digest,
    make_ref,
    split_ref,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from stratareview.config.http_resilience import ResilienceConfig

log = getLogger(__name__)


@dataclass(slots=True)
class HttpEvidenceStore:
    """Blobs are immutable once written, so reads go through the response cache."""

    resilience: ResilienceConfig
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    async def store(self, data: bytes, *, name: str) -> str:
        digest = content_digest(data)
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.put(
                    f"blobs/{digest}",
                    content=data,
                    headers={"Content-Type": "application/octet-stream"},
                )
                response.raise_for_status()
            except httpx.HTTPError as exc:
                msg = f"Could not store evidence {name!r}: {exc}"
                raise EvidenceStoreError(msg) from exc
        log.debug("Uploaded evidence %s as %s", name, digest)
        return make_ref(digest, name)

    async def resolve(self, ref: str) -> bytes:
        digest, _ = split_ref(ref)
        async with self.client_factory(self.resilience) as client:
            try:
                response = await client.get(f"blobs/{digest}")
            except httpx.HTTPError as exc:
                msg = f"Could not read evidence {ref!r}: {exc}"
                raise EvidenceStoreError(msg) from exc
        if response.status_code == httpx.codes.NOT_FOUND:
            raise EvidenceNotFoundError(ref)
        if response.is_error:
            msg = f"Could not read evidence {ref!r}: HTTP {response.status_code}"
            raise EvidenceStoreError(msg)
        if content_digest(response.content) != digest:
            msg = f"Evidence {ref!r} failed its integrity check"
            raise EvidenceStoreError(msg)
        return response.content
