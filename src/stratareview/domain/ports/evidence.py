"""Port for evidence blob storage."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class EvidenceStore(Protocol):
    """Stores evidence blobs behind opaque references."""

    async def resolve(self, ref: str) -> bytes: ...

    async def store(self, data: bytes, *, name: str) -> str: ...


__all__ = ["EvidenceStore"]
