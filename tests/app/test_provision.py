from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from clusterseed import app as app_module
from clusterseed.adapters.elasticsearch import ElasticsearchProbe
from clusterseed.adapters.http_resilience import ResilienceConfig, ResilientClient
from clusterseed.app import provision
from clusterseed.config import ElasticsearchConfig
from clusterseed.domain.artifacts import ArtifactKind
from clusterseed.domain.errors import ProvisioningFailedError, ScanError
from clusterseed.domain.reconciliation import ApplyAction
from tests.support.models import make_twitter_model

if TYPE_CHECKING:
    from pathlib import Path

    from tests.support.fake_cluster import FakeCluster

BASE_URL = "http://es.test:9200/"


def test_provision_applies_model_with_given_probe(cluster: FakeCluster, tmp_path: Path) -> None:
    make_twitter_model(tmp_path)

    report = provision(tmp_path, probe=cluster)

    assert report.ok
    assert cluster.count("twitter") == 10


def test_provision_scans_before_touching_the_cluster(
    cluster: FakeCluster, tmp_path: Path
) -> None:
    make_twitter_model(tmp_path)
    (tmp_path / "README.md").write_text("not part of the model")

    with pytest.raises(ScanError):
        provision(tmp_path, probe=cluster)

    assert cluster.calls == []


def test_strict_provision_raises_on_recorded_errors(cluster: FakeCluster, tmp_path: Path) -> None:
    make_twitter_model(tmp_path)
    cluster.fail_on("put", ArtifactKind.INDEX, "twitter")

    with pytest.raises(ProvisioningFailedError) as excinfo:
        provision(tmp_path, probe=cluster, strict=True)

    assert excinfo.value.report.actions(ArtifactKind.INDEX) == {"twitter": ApplyAction.FAILED}


def test_lenient_provision_returns_report_with_errors(
    cluster: FakeCluster, tmp_path: Path
) -> None:
    make_twitter_model(tmp_path)
    cluster.fail_on("put", ArtifactKind.INDEX, "twitter")

    report = provision(tmp_path, probe=cluster)

    assert not report.ok


def test_provision_against_http_cluster(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    make_twitter_model(tmp_path, tweets=2)
    requests: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append((request.method, request.url.path))
        match request.method, request.url.path:
            case "GET", "/":
                return httpx.Response(
                    200, json={"cluster_name": "seed", "version": {"number": "8.15.0"}}
                )
            case "HEAD", "/twitter":
                return httpx.Response(404)
            case "PUT", "/twitter":
                return httpx.Response(200, json={"acknowledged": True, "index": "twitter"})
            case "POST", "/twitter/_bulk":
                lines = request.content.decode().splitlines()
                items: list[dict[str, Any]] = [
                    {"index": {"_id": json.loads(line)["index"]["_id"], "status": 201}}
                    for line in lines[::2]
                ]
                return httpx.Response(200, json={"took": 1, "errors": False, "items": items})
        return httpx.Response(400, json={"error": "unexpected request"})

    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def client_factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL,
            transport=httpx.MockTransport(async_handler),
        )
        return client

    def probe_factory(*, config: ElasticsearchConfig) -> ElasticsearchProbe:
        return ElasticsearchProbe(config=config, client_factory=client_factory)

    monkeypatch.setattr(app_module, "ElasticsearchProbe", probe_factory)
    monkeypatch.setenv("ELASTICSEARCH_URL", BASE_URL)

    report = provision(tmp_path)

    assert report.ok
    assert report.documents_loaded == {"twitter/tweets.ndjson": 2}
    assert requests == [
        ("GET", "/"),
        ("HEAD", "/twitter"),
        ("PUT", "/twitter"),
        ("POST", "/twitter/_bulk"),
    ]
