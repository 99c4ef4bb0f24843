"""Model root discovery from the local filesystem."""

from __future__ import annotations

from .documents import load_document, read_bulk_file
from .scanner import ModelScanner, scan_model_root

__all__ = [
    "ModelScanner",
    "load_document",
    "read_bulk_file",
    "scan_model_root",
]
