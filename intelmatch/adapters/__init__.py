"""Adapters for talking to external intelligence platforms."""
from __future__ import annotations

from .http import build_detail_url, fetch_entity_detail, make_detail_fetcher, token_env_var

__all__ = ["build_detail_url", "fetch_entity_detail", "make_detail_fetcher", "token_env_var"]
