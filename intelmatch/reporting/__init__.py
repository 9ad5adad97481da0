"""Reporting helpers for Intelmatch CLI output."""
from __future__ import annotations

from .renderer import (
    ReportRenderOptions,
    ResolutionReport,
    ScanReport,
    render_resolution_report,
    render_scan_report,
)

__all__ = [
    "ReportRenderOptions",
    "ResolutionReport",
    "ScanReport",
    "render_resolution_report",
    "render_scan_report",
]
