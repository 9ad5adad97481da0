"""Extract scannable page text from saved web pages."""

from __future__ import annotations

import logging
from pathlib import Path

from bs4 import BeautifulSoup

from intelmatch.errors import InputValidationError
from intelmatch.utils import (
    LoadedDocument,
    collapse_whitespace,
    decode_page_bytes,
    format_display_path,
    read_page_bytes,
)

logger = logging.getLogger("intelmatch.ingestion.html_loader")

HTML_SUFFIXES = (".html", ".htm", ".xhtml")
_HIDDEN_TAGS = ("script", "style", "noscript", "template")


def extract_html_text(path: Path, *, description: str = "page") -> LoadedDocument:
    """Return the visible body text of a saved page, one text block per line.

    Script, style and noscript content never reaches the scanners. Offsets
    reported by the scanner refer to the returned text.
    """

    display = format_display_path(path)
    markup, encoding = decode_page_bytes(read_page_bytes(path, description), path, description)

    soup = BeautifulSoup(markup, "html.parser")
    for tag in soup.find_all(_HIDDEN_TAGS):
        tag.decompose()

    root = soup.body or soup
    lines = (collapse_whitespace(line) for line in root.get_text("\n").split("\n"))
    text = "\n".join(line for line in lines if line)
    if not text:
        raise InputValidationError(
            message=f"The {description} file {display} has no visible text.",
            remediation="Save the page after its content has loaded, or copy its text into a .txt file.",
        )

    logger.debug(
        "Extracted HTML text",
        extra={"path": display, "character_count": len(text), "source_encoding": encoding},
    )
    return LoadedDocument(path=path, text=text, encoding=encoding, format="html")


__all__ = ["HTML_SUFFIXES", "extract_html_text"]
