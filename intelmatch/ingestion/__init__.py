"""Document ingestion helpers."""
from __future__ import annotations

from .html_loader import HTML_SUFFIXES, extract_html_text
from .pdf_loader import extract_text

__all__ = ["HTML_SUFFIXES", "extract_html_text", "extract_text"]
