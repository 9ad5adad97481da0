"""Orchestration layer for Intelmatch."""
from __future__ import annotations

from .runner import ExecutionOutcome, handle_domain_error, run_aggregate, run_resolve, run_scan

__all__ = [
    "ExecutionOutcome",
    "handle_domain_error",
    "run_aggregate",
    "run_resolve",
    "run_scan",
]
