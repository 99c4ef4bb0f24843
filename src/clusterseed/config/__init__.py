"""Application configuration helpers."""

from __future__ import annotations

from .elasticsearch import ElasticsearchConfig, get_elasticsearch_config
from .env import require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy, TlsConfig
from .logging import configure_logging
from .provisioning import ProvisionConfig, get_provision_config

__all__ = [
    "ConfigurationError",
    "ElasticsearchConfig",
    "MissingConfigurationError",
    "ProvisionConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "TlsConfig",
    "configure_logging",
    "get_elasticsearch_config",
    "get_provision_config",
    "require_env_vars",
]
