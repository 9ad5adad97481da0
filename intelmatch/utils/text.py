"""Text helpers shared by detection, aggregation and logging."""
from __future__ import annotations

import hashlib
from typing import Tuple


def build_context_snippet(text: str, span: Tuple[int, int], window: int = 50) -> str:
    """Return the text around *span*, with ellipses where the window was cut."""

    if window < 0:
        raise ValueError("window must be non-negative")

    length = len(text)
    start, end = span
    start = max(0, min(start, length))
    end = max(start, min(end, length))

    left = max(0, start - window)
    right = min(length, end + window)
    snippet = text[left:right]
    if not snippet:
        return ""

    prefix = "..." if left > 0 else ""
    suffix = "..." if right < length else ""
    return f"{prefix}{snippet}{suffix}"


def collapse_whitespace(value: str) -> str:
    """Collapse every whitespace run to a single space and trim the ends."""

    return " ".join(value.split())


def mask_value(value: str) -> str:
    """Replace an indicator with a short digest so logs never carry raw IOCs."""

    digest = hashlib.sha256(value.encode("utf-8")).hexdigest()[:8]
    return f"<redacted:{digest}>"


__all__ = ["build_context_snippet", "collapse_whitespace", "mask_value"]
