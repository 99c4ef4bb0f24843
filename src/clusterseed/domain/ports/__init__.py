"""Domain port definitions for adapters."""

from __future__ import annotations

from .cluster import BulkFailure, BulkResult, ClusterProbe

__all__ = [
    "BulkFailure",
    "BulkResult",
    "ClusterProbe",
]
