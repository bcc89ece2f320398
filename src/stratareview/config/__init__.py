"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_float_env, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .evidence import EvidenceConfig, get_evidence_config
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .oracle import OracleConfig, get_oracle_config
from .review import ReviewConfig, get_review_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "EvidenceConfig",
    "MissingConfigurationError",
    "OracleConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "ReviewConfig",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_evidence_config",
    "get_oracle_config",
    "get_review_config",
    "get_storage_config",
    "optional_float_env",
    "require_env_vars",
]
