"""HTTP client for the evidence-extraction oracle."""

from __future__ import annotations

import base64
import json
import mimetypes
import re
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from stratareview.adapters.evidence import EvidenceStoreError, evidence_name
from stratareview.adapters.http_resilience import ResilientClient, default_client_factory
from stratareview.config.oracle import OracleConfig, get_oracle_config
from stratareview.domain.review.errors import OracleError

from .instructions import (
    ADDITIONAL_EVIDENCE_KEY,
    ORACLE_MODES,
    TARGET_PHASES,
    build_instruction,
    file_manifest,
)
from .schema import ErrorResponse, EvidencePart, ReviewRequest, TargetPayload

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping, Sequence

    from stratareview.config.http_resilience import ResilienceConfig
    from stratareview.domain.model import OracleCall, Payload, Target
    from stratareview.domain.ports import EvidenceStore

log = getLogger(__name__)

_CODE_FENCE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL | re.IGNORECASE)


class OracleAPIError(OracleError):
    """Raised when the oracle endpoint answers with an error or an unusable body."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


def strip_code_fences(text: str) -> str:
    stripped = text.strip()
    match = _CODE_FENCE.match(stripped)
    return match.group(1) if match else stripped


def parse_review_response(response: httpx.Response) -> dict[str, Any]:
    if response.is_error:
        try:
            message = ErrorResponse.model_validate_json(response.content).error
        except PydanticValidationError:
            message = response.text[:200] or response.reason_phrase
        raise OracleAPIError(
            f"Oracle returned HTTP {response.status_code}: {message}",
            status_code=response.status_code,
        )
    try:
        payload = json.loads(strip_code_fences(response.text))
    except json.JSONDecodeError as exc:
        raise OracleAPIError(
            f"Oracle returned malformed JSON: {exc.msg}", status_code=response.status_code
        ) from exc
    if not isinstance(payload, dict):
        raise OracleAPIError(
            f"Oracle returned {type(payload).__name__}, expected an object",
            status_code=response.status_code,
        )
    return payload  # pyright: ignore[reportUnknownVariableType]


def _mime_type(name: str) -> str:
    guessed, _ = mimetypes.guess_type(name)
    return guessed or "application/pdf"


@dataclass(slots=True)
class HttpOracle:
    """Oracle port over the review endpoint.

    ``config`` is read from the environment on first use so that building the
    adapter never requires oracle credentials.
    """

    evidence_store: EvidenceStore
    config: OracleConfig | None = None
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=default_client_factory
    )

    async def invoke(
        self,
        call: OracleCall,
        *,
        locked_context: Payload,
        evidence_refs: Sequence[str],
        extra_targets: Sequence[Target] = (),
    ) -> Mapping[str, Any]:
        request = await self.build_request(
            call,
            locked_context=locked_context,
            evidence_refs=evidence_refs,
            extra_targets=extra_targets,
        )
        log.info("Invoking oracle %s with %d file(s)", request.mode, len(request.files))
        config = self.resolved_config()
        async with self.client_factory(config.resilience) as client:
            try:
                response = await client.post(
                    config.review_path,
                    json=request.model_dump(by_alias=True, exclude_none=True),
                    headers={"Authorization": f"Bearer {config.api_key}"},
                )
            except httpx.HTTPError as exc:
                msg = f"Oracle request for {call} failed: {exc}"
                raise OracleAPIError(msg) from exc
        return parse_review_response(response)

    def resolved_config(self) -> OracleConfig:
        if self.config is None:
            self.config = get_oracle_config()
        return self.config

    async def build_request(
        self,
        call: OracleCall,
        *,
        locked_context: Payload,
        evidence_refs: Sequence[str],
        extra_targets: Sequence[Target] = (),
    ) -> ReviewRequest:
        additional_refs = set(locked_context.get(ADDITIONAL_EVIDENCE_KEY) or ())
        context = {
            key: value for key, value in locked_context.items() if key != ADDITIONAL_EVIDENCE_KEY
        }
        names = [evidence_name(ref) for ref in evidence_refs]
        manifest = file_manifest(
            names,
            additional={index for index, ref in enumerate(evidence_refs) if ref in additional_refs},
        )
        try:
            files = [
                EvidencePart(
                    name=name,
                    data=base64.b64encode(await self.evidence_store.resolve(ref)).decode("ascii"),
                    mime_type=_mime_type(name),
                )
                for ref, name in zip(evidence_refs, names, strict=True)
            ]
        except EvidenceStoreError as exc:
            msg = f"Evidence for {call} is unavailable: {exc}"
            raise OracleError(msg) from exc

        targets = [
            TargetPayload(
                phase=TARGET_PHASES[target.domain],
                item_id=target.item_id,
                description=target.description,
                source=str(target.source),
            )
            for target in extra_targets
        ]
        return ReviewRequest(
            mode=ORACLE_MODES[call],
            system_prompt=build_instruction(
                call, manifest=manifest, locked_context=context or None, targets=extra_targets
            ),
            file_manifest=manifest,
            files=files,
            previous_audit=dict(context) if context else None,
            ai_attempt_targets=targets or None,
        )
