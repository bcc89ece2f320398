"""Content-addressed evidence store on the local filesystem."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from .refs import EvidenceNotFoundError, content_digest, make_ref, split_ref

if TYPE_CHECKING:
    from pathlib import Path

log = getLogger(__name__)


@dataclass(slots=True)
class FilesystemEvidenceStore:
    root: Path

    async def store(self, data: bytes, *, name: str) -> str:
        digest = content_digest(data)
        path = self._blob_path(digest)
        if not path.exists():
            await asyncio.to_thread(self._write, path, data)
            log.debug("Stored evidence %s (%d bytes)", name, len(data))
        return make_ref(digest, name)

    async def resolve(self, ref: str) -> bytes:
        digest, _ = split_ref(ref)
        path = self._blob_path(digest)
        if not path.exists():
            raise EvidenceNotFoundError(ref)
        return await asyncio.to_thread(path.read_bytes)

    def _blob_path(self, digest: str) -> Path:
        return self.root / digest[:2] / digest

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".part")
        tmp.write_bytes(data)
        tmp.replace(path)
