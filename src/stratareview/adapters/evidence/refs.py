"""Evidence reference format: ``<sha256 hex>/<file name>``.

The core treats references as opaque; adapters split them to find the blob and
the display name.
"""

from __future__ import annotations

import hashlib
import re

_DIGEST = re.compile(r"^[0-9a-f]{64}$")


class EvidenceStoreError(RuntimeError):
    """Raised when an evidence blob cannot be stored or read."""


class EvidenceNotFoundError(EvidenceStoreError):
    def __init__(self, ref: str) -> None:
        self.ref = ref
        super().__init__(f"Evidence not found: {ref}")


def content_digest(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def make_ref(digest: str, name: str) -> str:
    clean_name = name.replace("\\", "/").rsplit("/", 1)[-1].strip() or "evidence"
    return f"{digest}/{clean_name}"


def split_ref(ref: str) -> tuple[str, str]:
    digest, _, name = ref.partition("/")
    if not _DIGEST.match(digest):
        msg = f"Malformed evidence reference: {ref!r}"
        raise EvidenceStoreError(msg)
    return digest, name or digest


def evidence_name(ref: str) -> str:
    return split_ref(ref)[1]
