"""Intelmatch detection and reconciliation engine."""
from __future__ import annotations

from .errors import IntelmatchError

__all__ = ("__version__", "IntelmatchError")

__version__ = "0.1.0"
