"""Review orchestration defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_float_env


@dataclass(frozen=True, slots=True)
class ReviewConfig:
    # None leaves timeouts to the transport
    phase_timeout_seconds: float | None = None


def get_review_config() -> ReviewConfig:
    return ReviewConfig(phase_timeout_seconds=optional_float_env("REVIEW_PHASE_TIMEOUT_SECONDS"))
