"""Port for the external evidence-extraction oracle."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from stratareview.domain.model import OracleCall, Payload, Target


@runtime_checkable
class Oracle(Protocol):
    """Maps one call + locked context + evidence to a structured output mapping.

    Implementations raise :class:`stratareview.domain.review.errors.OracleError`
    (or a subclass) on transport or payload failures.
    """

    async def invoke(
        self,
        call: OracleCall,
        *,
        locked_context: Payload,
        evidence_refs: Sequence[str],
        extra_targets: Sequence[Target] = (),
    ) -> Mapping[str, Any]: ...


__all__ = ["Oracle"]
