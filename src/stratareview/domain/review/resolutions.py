"""At most one user disposition per item key; the latest write wins."""

from __future__ import annotations

from dataclasses import replace
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Sequence

    from stratareview.domain.model import UserResolution


def upsert(
    resolutions: Sequence[UserResolution],
    item_key: str,
    resolution: UserResolution,
) -> tuple[UserResolution, ...]:
    """Drop any entry for ``item_key`` and append ``resolution`` under that key.

    The comment is not validated here.
    """

    if resolution.item_key != item_key:
        resolution = replace(resolution, item_key=item_key)
    kept = tuple(entry for entry in resolutions if entry.item_key != item_key)
    return (*kept, resolution)


def find(resolutions: Sequence[UserResolution], item_key: str) -> UserResolution | None:
    for entry in reversed(resolutions):
        if entry.item_key == item_key:
            return entry
    return None
