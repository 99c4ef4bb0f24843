"""Cluster probe over the Elasticsearch REST API."""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING, Final
from urllib.parse import quote

import httpx
from pydantic import ValidationError

from clusterseed.adapters.http_resilience import ResilientClient
from clusterseed.domain.artifacts import ArtifactKind
from clusterseed.domain.errors import ClusterRequestError, NotFoundError, TransportError
from clusterseed.domain.ports.cluster import BulkFailure, BulkResult, ClusterProbe

from .schema import (
    BulkResponse,
    ClusterInfo,
    ComponentTemplatesResponse,
    ErrorResponse,
    IndexTemplatesResponse,
)
from .settings import is_dynamic_index_setting

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence
    from types import TracebackType

    from clusterseed.config.elasticsearch import ElasticsearchConfig
    from clusterseed.config.http_resilience import ResilienceConfig
    from clusterseed.domain.artifacts import BulkAction, Document

log = getLogger(__name__)

NDJSON_CONTENT_TYPE: Final = "application/x-ndjson"

_PATHS: Final[dict[ArtifactKind, str]] = {
    ArtifactKind.COMPONENT_TEMPLATE: "_component_template/{name}",
    ArtifactKind.INDEX_TEMPLATE: "_index_template/{name}",
    ArtifactKind.LEGACY_TEMPLATE: "_template/{name}",
    ArtifactKind.LIFECYCLE_POLICY: "_ilm/policy/{name}",
    ArtifactKind.INGEST_PIPELINE: "_ingest/pipeline/{name}",
    ArtifactKind.INDEX: "{name}",
}
ALIASES_PATH: Final = "_aliases"


class ElasticsearchProbe:
    """Cluster probe speaking the Elasticsearch REST API.

    One HTTP client is opened for the lifetime of the probe; use it as an
    async context manager.
    """

    def __init__(
        self,
        *,
        config: ElasticsearchConfig,
        client_factory: Callable[[ResilienceConfig], ResilientClient] | None = None,
    ) -> None:
        self._config = config
        self._resilience = config.resilience
        self._client_factory = client_factory or ResilientClient
        self._client: ResilientClient | None = None

    async def __aenter__(self) -> ElasticsearchProbe:
        self._client = self._client_factory(self._resilience)
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def info(self) -> ClusterInfo:
        response = await self._send("GET", "")
        return ClusterInfo.model_validate(response.json())

    async def exists(self, kind: ArtifactKind, name: str) -> bool:
        # Lifecycle policies have no HEAD endpoint.
        method = "GET" if kind is ArtifactKind.LIFECYCLE_POLICY else "HEAD"
        response = await self._send(method, _path(kind, name), allow_missing=True)
        return response.status_code != httpx.codes.NOT_FOUND

    async def get(self, kind: ArtifactKind, name: str) -> Document:
        if kind is ArtifactKind.ALIASES:
            response = await self._send("GET", "_alias")
        else:
            response = await self._send("GET", _path(kind, name))
        payload = response.json()
        if not isinstance(payload, dict):
            raise ClusterRequestError(
                f"Unexpected response payload for {kind} {name}",
                status_code=response.status_code,
            )
        return _unwrap(kind, name, payload)

    async def put(self, kind: ArtifactKind, name: str, document: Document) -> None:
        if kind is ArtifactKind.ALIASES:
            await self._send("POST", ALIASES_PATH, json=document)
            return
        await self._send("PUT", _path(kind, name), json=document)

    async def update_partial(self, kind: ArtifactKind, name: str, patch: Document) -> None:
        if kind is ArtifactKind.ALIASES:
            await self._send("POST", ALIASES_PATH, json=patch)
            return
        if kind is not ArtifactKind.INDEX:
            raise ValueError(f"{kind} artifacts are replaced wholesale, not patched")

        unknown = patch.keys() - {"settings", "mappings"}
        if unknown:
            raise ValueError(f"Unsupported index patch sections: {sorted(unknown)}")
        path = _path(kind, name)
        if "mappings" in patch:
            await self._send("PUT", f"{path}/_mapping", json=patch["mappings"])
        if "settings" in patch:
            await self._send("PUT", f"{path}/_settings", json=patch["settings"])

    async def delete(self, kind: ArtifactKind, name: str) -> None:
        if kind is ArtifactKind.ALIASES:
            raise ValueError("Alias actions cannot be deleted as a whole")
        await self._send("DELETE", _path(kind, name))

    async def bulk_load(
        self,
        index_name: str | None,
        actions: Sequence[BulkAction],
    ) -> BulkResult:
        if not actions:
            return BulkResult()

        path = f"{_quote(index_name)}/_bulk" if index_name else "_bulk"
        response = await self._send(
            "POST",
            path,
            content=encode_bulk_body(actions),
            headers={"Content-Type": NDJSON_CONTENT_TYPE},
        )
        try:
            payload = BulkResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ClusterRequestError(
                f"Unexpected bulk response: {exc}", status_code=response.status_code
            ) from exc

        failures: list[BulkFailure] = []
        succeeded = 0
        for position, item in enumerate(payload.results()):
            if item.failed:
                failures.append(BulkFailure(position, item.describe_error()))
            else:
                succeeded += 1
        if failures:
            log.warning(
                "Bulk request to %s rejected %s of %s actions", path, len(failures), len(actions)
            )
        return BulkResult(succeeded=succeeded, failures=tuple(failures))

    def is_dynamic_setting(self, key: str) -> bool:
        return is_dynamic_index_setting(key)

    async def _send(
        self,
        method: str,
        path: str,
        *,
        json: object = None,
        content: bytes | None = None,
        headers: dict[str, str] | None = None,
        allow_missing: bool = False,
    ) -> httpx.Response:
        client = self._require_client()
        try:
            if content is not None:
                response = await client.request(method, path, content=content, headers=headers)
            elif json is not None:
                response = await client.request(method, path, json=json, headers=headers)
            else:
                response = await client.request(method, path, headers=headers)
        except httpx.TimeoutException as exc:
            raise TransportError(f"{method} /{path} timed out") from exc
        except httpx.HTTPError as exc:
            raise TransportError(f"{method} /{path} failed: {exc}") from exc

        log.debug("%s /%s -> %s", method, path, response.status_code)
        if response.status_code == httpx.codes.NOT_FOUND:
            if allow_missing:
                return response
            raise NotFoundError(f"{method} /{path}: not found", reason=_error_reason(response))
        if response.is_error:
            reason = _error_reason(response)
            raise ClusterRequestError(
                f"{method} /{path} returned {response.status_code}: {reason}",
                status_code=response.status_code,
                reason=reason,
            )
        return response

    def _require_client(self) -> ResilientClient:
        if self._client is None:
            raise RuntimeError("ElasticsearchProbe must be used as an async context manager")
        return self._client


def encode_bulk_body(actions: Sequence[BulkAction]) -> bytes:
    lines: list[str] = []
    for action in actions:
        lines.append(json.dumps(action.action_line(), separators=(",", ":")))
        if action.source is not None:
            lines.append(json.dumps(action.source, separators=(",", ":")))
    return ("\n".join(lines) + "\n").encode("utf-8")


def _quote(name: str) -> str:
    return quote(name, safe="")


def _path(kind: ArtifactKind, name: str) -> str:
    template = _PATHS.get(kind)
    if template is None:
        raise ValueError(f"No endpoint for {kind} artifacts")
    return template.format(name=_quote(name))


def _error_reason(response: httpx.Response) -> str:
    if not response.content:
        return response.reason_phrase
    try:
        return ErrorResponse.model_validate(response.json()).describe()
    except (ValueError, ValidationError):
        return response.text[:200]


def _unwrap(kind: ArtifactKind, name: str, payload: Document) -> Document:
    """Strip the response envelope the cluster puts around a single artifact."""

    match kind:
        case ArtifactKind.COMPONENT_TEMPLATE:
            entries = ComponentTemplatesResponse.model_validate(payload).component_templates
            bodies = [entry.body for entry in entries if entry.name == name]
        case ArtifactKind.INDEX_TEMPLATE:
            entries_v2 = IndexTemplatesResponse.model_validate(payload).index_templates
            bodies = [entry.body for entry in entries_v2 if entry.name == name]
        case ArtifactKind.LIFECYCLE_POLICY:
            entry = payload.get(name)
            bodies = [{"policy": entry.get("policy", {})}] if isinstance(entry, dict) else []
        case ArtifactKind.INDEX:
            # The key is the concrete index name, which differs for date math.
            bodies = [value for value in payload.values() if isinstance(value, dict)][:1]
        case ArtifactKind.ALIASES:
            bodies = [payload]
        case _:
            entry = payload.get(name)
            bodies = [entry] if isinstance(entry, dict) else []

    if not bodies:
        raise NotFoundError(f"{kind} {name} not found in cluster response")
    return bodies[0]


if TYPE_CHECKING:
    _probe_check: type[ClusterProbe] = ElasticsearchProbe
