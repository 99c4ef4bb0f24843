"""Pydantic models describing the cluster response payloads we consume."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ClusterBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class ErrorCause(ClusterBaseModel):
    type: str | None = None
    reason: str | None = None


class ErrorResponse(ClusterBaseModel):
    error: ErrorCause | str
    status: int | None = None

    def describe(self) -> str:
        if isinstance(self.error, str):
            return self.error
        parts = [part for part in (self.error.type, self.error.reason) if part]
        return ": ".join(parts) or "unknown error"


class BulkItemResult(ClusterBaseModel):
    index: str | None = Field(default=None, alias="_index")
    id: str | None = Field(default=None, alias="_id")
    status: int
    error: ErrorCause | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None or self.status >= 300

    def describe_error(self) -> str:
        if self.error is None:
            return f"status {self.status}"
        parts = [part for part in (self.error.type, self.error.reason) if part]
        return ": ".join(parts) or f"status {self.status}"


class BulkResponse(ClusterBaseModel):
    took: int | None = None
    errors: bool = False
    items: list[dict[str, BulkItemResult]] = Field(default_factory=list)

    def results(self) -> list[BulkItemResult]:
        return [next(iter(item.values())) for item in self.items if item]


class IndexTemplateEntry(ClusterBaseModel):
    name: str
    body: dict[str, Any] = Field(alias="index_template")


class IndexTemplatesResponse(ClusterBaseModel):
    index_templates: list[IndexTemplateEntry]


class ComponentTemplateEntry(ClusterBaseModel):
    name: str
    body: dict[str, Any] = Field(alias="component_template")


class ComponentTemplatesResponse(ClusterBaseModel):
    component_templates: list[ComponentTemplateEntry]


class VersionInfo(ClusterBaseModel):
    number: str
    distribution: str | None = None


class ClusterInfo(ClusterBaseModel):
    name: str | None = None
    cluster_name: str | None = None
    version: VersionInfo
