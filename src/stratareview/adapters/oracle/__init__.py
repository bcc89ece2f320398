"""Oracle adapter: HTTP client, payload schema and instruction composition."""

from __future__ import annotations

from .client import HttpOracle, OracleAPIError, parse_review_response, strip_code_fences
from .instructions import build_instruction, file_manifest

__all__ = [
    "HttpOracle",
    "OracleAPIError",
    "build_instruction",
    "file_manifest",
    "parse_review_response",
    "strip_code_fences",
]
