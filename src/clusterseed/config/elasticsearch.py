"""Cluster connection configuration values."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .env import (
    optional_env_bool,
    optional_env_float,
    optional_env_int,
    optional_env_str,
    require_env_vars,
)
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy, TlsConfig

ELASTICSEARCH_TIMEOUT_SECONDS = 30.0
ELASTICSEARCH_MAX_RETRIES = 0


@dataclass(frozen=True, slots=True)
class ElasticsearchConfig:
    """Holds cluster connection settings."""

    resilience: ResilienceConfig
    api_key: str | None = None

    @property
    def url(self) -> str:
        return self.resilience.base_url or ""


def get_elasticsearch_config(*, resilience: ResilienceConfig | None = None) -> ElasticsearchConfig:
    values = require_env_vars(("ELASTICSEARCH_URL",))
    url = values["ELASTICSEARCH_URL"].rstrip("/") + "/"

    username = optional_env_str("ELASTICSEARCH_USERNAME")
    password = optional_env_str("ELASTICSEARCH_PASSWORD")
    if (username is None) != (password is None):
        raise ConfigurationError(
            "ELASTICSEARCH_USERNAME and ELASTICSEARCH_PASSWORD must be set together"
        )
    api_key = optional_env_str("ELASTICSEARCH_API_KEY")
    if api_key is not None and username is not None:
        raise ConfigurationError("Use either ELASTICSEARCH_API_KEY or username/password, not both")

    ca_cert_value = optional_env_str("ELASTICSEARCH_CA_CERT")
    ca_cert = Path(ca_cert_value).expanduser() if ca_cert_value else None
    if ca_cert is not None and not ca_cert.is_file():
        raise ConfigurationError(f"ELASTICSEARCH_CA_CERT does not point to a file: {ca_cert}")

    max_retries = optional_env_int(
        "ELASTICSEARCH_MAX_RETRIES", ELASTICSEARCH_MAX_RETRIES, minimum=0
    )
    max_requests_per_second = optional_env_int(
        "ELASTICSEARCH_MAX_REQUESTS_PER_SECOND", None, minimum=1
    )

    headers = {"Authorization": f"ApiKey {api_key}"} if api_key is not None else None
    return ElasticsearchConfig(
        resilience=resilience
        or ResilienceConfig(
            name="elasticsearch",
            base_url=url,
            timeout_seconds=optional_env_float(
                "ELASTICSEARCH_TIMEOUT_SECONDS", ELASTICSEARCH_TIMEOUT_SECONDS, minimum=0.1
            ),
            retry=RetryPolicy(total=max_retries or 0),
            ratelimit=(
                RateLimit(max_calls=max_requests_per_second, per_seconds=1.0)
                if max_requests_per_second
                else None
            ),
            tls=TlsConfig(
                verify=optional_env_bool("ELASTICSEARCH_VERIFY_TLS", True),
                ca_cert=ca_cert,
            ),
            auth=(username, password) if username is not None and password is not None else None,
            default_headers=headers,
        ),
        api_key=api_key,
    )
