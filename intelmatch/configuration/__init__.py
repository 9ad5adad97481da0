"""Configuration utilities for Intelmatch."""
from __future__ import annotations

from .loaders import (
    PlatformsConfig,
    load_candidates,
    load_platforms,
    load_scan_batch,
    load_structured_document,
)

__all__ = [
    "PlatformsConfig",
    "load_candidates",
    "load_platforms",
    "load_scan_batch",
    "load_structured_document",
]
