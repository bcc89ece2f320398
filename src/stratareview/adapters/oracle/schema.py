"""Pydantic models describing the oracle review endpoint payloads."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class OracleBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class EvidencePart(OracleBaseModel):
    name: str
    data: str
    mime_type: str = Field(default="application/pdf", alias="mimeType")


class TargetPayload(OracleBaseModel):
    phase: str
    item_id: str = Field(alias="itemId")
    description: str
    source: str


class ReviewRequest(OracleBaseModel):
    mode: str
    system_prompt: str = Field(alias="systemPrompt")
    file_manifest: str = Field(alias="fileManifest")
    files: list[EvidencePart]
    previous_audit: dict[str, object] | None = Field(default=None, alias="previousAudit")
    ai_attempt_targets: list[TargetPayload] | None = Field(default=None, alias="aiAttemptTargets")


class ErrorResponse(OracleBaseModel):
    error: str
    details: str | None = None
