"""Utility helpers for Intelmatch."""

from __future__ import annotations

from .io import (
    PAGE_FORMATS,
    LoadedDocument,
    decode_page_bytes,
    format_display_path,
    load_text_document,
    normalize_newlines,
    read_page_bytes,
)
from .text import build_context_snippet, collapse_whitespace, mask_value

__all__ = [
    "LoadedDocument",
    "PAGE_FORMATS",
    "build_context_snippet",
    "collapse_whitespace",
    "decode_page_bytes",
    "format_display_path",
    "load_text_document",
    "mask_value",
    "normalize_newlines",
    "read_page_bytes",
]
