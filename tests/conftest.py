from __future__ import annotations

from datetime import UTC, datetime

import pytest

from tests.support.fake_cluster import FakeCluster

FIXED_NOW = datetime(2024, 3, 5, 14, 30, 15, tzinfo=UTC)


@pytest.fixture
def cluster() -> FakeCluster:
    return FakeCluster()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture(autouse=True)
def _clean_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in (
        "ELASTICSEARCH_URL",
        "ELASTICSEARCH_USERNAME",
        "ELASTICSEARCH_PASSWORD",
        "ELASTICSEARCH_API_KEY",
        "ELASTICSEARCH_CA_CERT",
        "ELASTICSEARCH_VERIFY_TLS",
        "ELASTICSEARCH_TIMEOUT_SECONDS",
        "ELASTICSEARCH_MAX_RETRIES",
        "ELASTICSEARCH_MAX_REQUESTS_PER_SECOND",
        "CLUSTERSEED_MODEL_ROOT",
        "CLUSTERSEED_FORCE",
        "CLUSTERSEED_MERGE_MAPPING",
        "CLUSTERSEED_WORKERS",
        "CLUSTERSEED_BULK_BATCH_SIZE",
    ):
        monkeypatch.delenv(name, raising=False)
