"""Oracle (evidence extraction service) configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_float_env, require_env_vars
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

ORACLE_REVIEW_PATH = "/api/executeFullReview"
# Extraction calls over full evidence packs routinely take minutes.
ORACLE_TIMEOUT_SECONDS = 540.0


@dataclass(frozen=True)
class OracleConfig:
    """Holds oracle endpoint configuration values."""

    base_url: str
    api_key: str
    resilience: ResilienceConfig
    review_path: str = ORACLE_REVIEW_PATH


def get_oracle_config(*, resilience: ResilienceConfig | None = None) -> OracleConfig:
    values = require_env_vars(("ORACLE_BASE_URL", "ORACLE_API_KEY"))
    base_url = values["ORACLE_BASE_URL"].rstrip("/")
    timeout = optional_float_env("ORACLE_TIMEOUT_SECONDS") or ORACLE_TIMEOUT_SECONDS
    return OracleConfig(
        base_url=base_url,
        api_key=values["ORACLE_API_KEY"],
        resilience=resilience
        or ResilienceConfig(
            name="oracle",
            base_url=base_url,
            timeout_seconds=timeout,
            retry=RetryPolicy.for_methods("POST", total=2),
            ratelimit=RateLimit(max_calls=4, per_seconds=1.0),
            cache=None,
        ),
    )
