from __future__ import annotations

import asyncio
import json
from typing import TYPE_CHECKING, Any

import httpx
import pytest

from clusterseed.adapters.elasticsearch import ElasticsearchProbe, encode_bulk_body
from clusterseed.adapters.http_resilience import ResilienceConfig, ResilientClient
from clusterseed.config import ElasticsearchConfig
from clusterseed.domain.artifacts import ArtifactKind, BulkAction, BulkOp
from clusterseed.domain.errors import ClusterRequestError, NotFoundError, TransportError

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from clusterseed.adapters.elasticsearch.schema import ClusterInfo
    from clusterseed.domain.ports.cluster import BulkResult

BASE_URL = "http://es.test:9200/"

type Handler = Callable[[httpx.Request], httpx.Response]


def _make_client_factory(handler: Handler) -> Callable[[ResilienceConfig], ResilientClient]:
    async def async_handler(request: httpx.Request) -> httpx.Response:
        return handler(request)

    def factory(resilience: ResilienceConfig) -> ResilientClient:
        client = ResilientClient(resilience)
        client._client = httpx.AsyncClient(  # noqa: SLF001  # type: ignore[reportPrivateUsage]
            base_url=BASE_URL,
            transport=httpx.MockTransport(async_handler),
        )
        return client

    return factory


def _run[T](handler: Handler, scenario: Callable[[ElasticsearchProbe], Awaitable[T]]) -> T:
    config = ElasticsearchConfig(
        resilience=ResilienceConfig(name="elasticsearch", base_url=BASE_URL)
    )

    async def main() -> T:
        async with ElasticsearchProbe(
            config=config, client_factory=_make_client_factory(handler)
        ) as probe:
            return await scenario(probe)

    return asyncio.run(main())


def _json(request: httpx.Request) -> Any:
    return json.loads(request.content)


def test_put_uses_kind_specific_endpoints() -> None:
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, _json(request)))
        return httpx.Response(200, json={"acknowledged": True})

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.put(ArtifactKind.COMPONENT_TEMPLATE, "base", {"template": {}})
        await probe.put(ArtifactKind.INDEX_TEMPLATE, "logs", {"index_patterns": ["logs-*"]})
        await probe.put(ArtifactKind.LEGACY_TEMPLATE, "old", {"index_patterns": ["old-*"]})
        await probe.put(ArtifactKind.LIFECYCLE_POLICY, "hot", {"policy": {}})
        await probe.put(ArtifactKind.INGEST_PIPELINE, "strip", {"processors": []})
        await probe.put(ArtifactKind.INDEX, "twitter", {"settings": {}})
        await probe.put(ArtifactKind.ALIASES, "_aliases", {"actions": []})

    _run(handler, scenario)

    assert [(method, path) for method, path, _ in seen] == [
        ("PUT", "/_component_template/base"),
        ("PUT", "/_index_template/logs"),
        ("PUT", "/_template/old"),
        ("PUT", "/_ilm/policy/hot"),
        ("PUT", "/_ingest/pipeline/strip"),
        ("PUT", "/twitter"),
        ("POST", "/_aliases"),
    ]
    assert seen[0][2] == {"template": {}}


def test_exists_maps_404_to_false() -> None:
    seen: list[tuple[str, str]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path))
        status = 200 if request.url.path == "/twitter" else 404
        return httpx.Response(status)

    async def scenario(probe: ElasticsearchProbe) -> tuple[bool, bool, bool]:
        return (
            await probe.exists(ArtifactKind.INDEX, "twitter"),
            await probe.exists(ArtifactKind.INDEX, "person"),
            await probe.exists(ArtifactKind.LIFECYCLE_POLICY, "hot"),
        )

    assert _run(handler, scenario) == (True, False, False)
    assert seen == [("HEAD", "/twitter"), ("HEAD", "/person"), ("GET", "/_ilm/policy/hot")]


def test_index_names_are_percent_encoded() -> None:
    paths: list[bytes] = []

    def handler(request: httpx.Request) -> httpx.Response:
        paths.append(request.url.raw_path)
        return httpx.Response(200, json={"acknowledged": True})

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.put(ArtifactKind.INDEX, "<logs-{now/d}>", {})

    _run(handler, scenario)

    assert paths == [b"/%3Clogs-%7Bnow%2Fd%7D%3E"]


def test_get_unwraps_response_envelopes() -> None:
    payloads: dict[str, Any] = {
        "/twitter": {"twitter": {"mappings": {"properties": {}}, "settings": {"index": {}}}},
        "/_index_template/logs": {
            "index_templates": [{"name": "logs", "index_template": {"index_patterns": ["logs-*"]}}]
        },
        "/_component_template/base": {
            "component_templates": [{"name": "base", "component_template": {"template": {}}}]
        },
        "/_ilm/policy/hot": {"hot": {"version": 3, "policy": {"phases": {}}}},
        "/_ingest/pipeline/strip": {"strip": {"processors": []}},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=payloads[request.url.path])

    async def scenario(probe: ElasticsearchProbe) -> list[dict[str, Any]]:
        return [
            await probe.get(ArtifactKind.INDEX, "twitter"),
            await probe.get(ArtifactKind.INDEX_TEMPLATE, "logs"),
            await probe.get(ArtifactKind.COMPONENT_TEMPLATE, "base"),
            await probe.get(ArtifactKind.LIFECYCLE_POLICY, "hot"),
            await probe.get(ArtifactKind.INGEST_PIPELINE, "strip"),
        ]

    assert _run(handler, scenario) == [
        {"mappings": {"properties": {}}, "settings": {"index": {}}},
        {"index_patterns": ["logs-*"]},
        {"template": {}},
        {"policy": {"phases": {}}},
        {"processors": []},
    ]


def test_get_missing_artifact_raises_not_found() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            404,
            json={
                "error": {"type": "index_not_found_exception", "reason": "no such index [person]"},
                "status": 404,
            },
        )

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.get(ArtifactKind.INDEX, "person")

    with pytest.raises(NotFoundError) as excinfo:
        _run(handler, scenario)

    assert excinfo.value.status_code == 404
    assert excinfo.value.reason == "index_not_found_exception: no such index [person]"


def test_rejected_request_raises_cluster_request_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            400,
            json={
                "error": {
                    "type": "resource_already_exists_exception",
                    "reason": "index [twitter/abc] already exists",
                },
                "status": 400,
            },
        )

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.put(ArtifactKind.INDEX, "twitter", {})

    with pytest.raises(ClusterRequestError) as excinfo:
        _run(handler, scenario)

    assert excinfo.value.status_code == 400
    assert excinfo.value.reason is not None
    assert excinfo.value.reason.startswith("resource_already_exists_exception")


def test_unreachable_cluster_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    async def scenario(probe: ElasticsearchProbe) -> bool:
        return await probe.exists(ArtifactKind.INDEX, "twitter")

    with pytest.raises(TransportError, match="connection refused"):
        _run(handler, scenario)


def test_timeout_raises_transport_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.delete(ArtifactKind.INDEX, "twitter")

    with pytest.raises(TransportError, match="timed out"):
        _run(handler, scenario)


def test_update_partial_splits_mappings_and_settings() -> None:
    seen: list[tuple[str, str, Any]] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, request.url.path, _json(request)))
        return httpx.Response(200, json={"acknowledged": True})

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.update_partial(
            ArtifactKind.INDEX,
            "twitter",
            {
                "mappings": {"properties": {"user": {"type": "keyword"}}},
                "settings": {"index": {"refresh_interval": "5s"}},
            },
        )

    _run(handler, scenario)

    assert seen == [
        ("PUT", "/twitter/_mapping", {"properties": {"user": {"type": "keyword"}}}),
        ("PUT", "/twitter/_settings", {"index": {"refresh_interval": "5s"}}),
    ]


def test_update_partial_rejects_wholesale_kinds() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async def scenario(probe: ElasticsearchProbe) -> None:
        await probe.update_partial(ArtifactKind.INGEST_PIPELINE, "strip", {"processors": []})

    with pytest.raises(ValueError, match="replaced wholesale"):
        _run(handler, scenario)


def test_bulk_load_sends_ndjson_and_parses_item_failures() -> None:
    captured: dict[str, Any] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["path"] = request.url.path
        captured["content_type"] = request.headers["content-type"]
        captured["lines"] = request.content.decode().splitlines()
        return httpx.Response(
            200,
            json={
                "took": 3,
                "errors": True,
                "items": [
                    {"index": {"_index": "twitter", "_id": "1", "status": 201}},
                    {
                        "create": {
                            "_index": "twitter",
                            "_id": "2",
                            "status": 409,
                            "error": {
                                "type": "version_conflict_engine_exception",
                                "reason": "document already exists",
                            },
                        }
                    },
                    {"delete": {"_index": "twitter", "_id": "3", "status": 200}},
                ],
            },
        )

    actions = [
        BulkAction(op=BulkOp.INDEX, id="1", source={"message": "one"}),
        BulkAction(op=BulkOp.CREATE, id="2", source={"message": "two"}),
        BulkAction(op=BulkOp.DELETE, id="3"),
    ]

    async def scenario(probe: ElasticsearchProbe) -> BulkResult:
        return await probe.bulk_load("twitter", actions)

    result = _run(handler, scenario)

    assert captured["path"] == "/twitter/_bulk"
    assert captured["content_type"] == "application/x-ndjson"
    assert [json.loads(line) for line in captured["lines"]] == [
        {"index": {"_id": "1"}},
        {"message": "one"},
        {"create": {"_id": "2"}},
        {"message": "two"},
        {"delete": {"_id": "3"}},
    ]
    assert result.succeeded == 2
    assert [(failure.doc_index, failure.reason) for failure in result.failures] == [
        (1, "version_conflict_engine_exception: document already exists")
    ]


def test_bulk_load_without_actions_sends_nothing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise AssertionError("no request expected")

    async def scenario(probe: ElasticsearchProbe) -> BulkResult:
        return await probe.bulk_load(None, [])

    result = _run(handler, scenario)

    assert result.ok
    assert result.succeeded == 0


def test_encode_bulk_body_routes_global_actions() -> None:
    body = encode_bulk_body(
        [BulkAction(op=BulkOp.INDEX, index="audit", id="a", source={"event": "seeded"})]
    )

    assert body == b'{"index":{"_index":"audit","_id":"a"}}\n{"event":"seeded"}\n'


def test_info_reads_cluster_version() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/"
        return httpx.Response(
            200,
            json={"name": "node-1", "cluster_name": "seed", "version": {"number": "8.15.0"}},
        )

    async def scenario(probe: ElasticsearchProbe) -> ClusterInfo:
        return await probe.info()

    info = _run(handler, scenario)

    assert info.cluster_name == "seed"
    assert info.version.number == "8.15.0"


def test_probe_must_be_entered_before_use() -> None:
    config = ElasticsearchConfig(
        resilience=ResilienceConfig(name="elasticsearch", base_url=BASE_URL)
    )
    probe = ElasticsearchProbe(config=config)

    with pytest.raises(RuntimeError, match="async context manager"):
        asyncio.run(probe.exists(ArtifactKind.INDEX, "twitter"))
