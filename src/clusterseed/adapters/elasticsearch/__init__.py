"""Elasticsearch REST adapter."""

from __future__ import annotations

from .client import ElasticsearchProbe, encode_bulk_body
from .settings import is_dynamic_index_setting

__all__ = [
    "ElasticsearchProbe",
    "encode_bulk_body",
    "is_dynamic_index_setting",
]
