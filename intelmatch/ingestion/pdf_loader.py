"""Extract scannable page text from PDF reports."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from intelmatch.errors import PdfExtractionError
from intelmatch.utils import LoadedDocument, collapse_whitespace, format_display_path

logger = logging.getLogger("intelmatch.ingestion.pdf_loader")

_PDF_ENCODING_LABEL = "pdf"


def extract_text(path: Path, *, description: str = "page") -> LoadedDocument:
    """Return the PDF's text as one line per page, whitespace collapsed.

    Offsets reported by the scanner refer to this flattened text.
    """

    display = format_display_path(path)
    try:
        handle = path.open("rb")
    except OSError as exc:
        raise PdfExtractionError(
            message=f"Unable to open the {description} file {display} for reading.",
            remediation="Verify the file is accessible and not locked by another process.",
        ) from exc

    with handle:
        try:
            reader = PdfReader(handle)
        except PdfReadError as exc:
            raise PdfExtractionError(
                message=f"The {description} file {display} is not a readable PDF.",
                remediation="Provide a valid text-based PDF report and retry the command.",
            ) from exc

        if reader.is_encrypted:
            raise PdfExtractionError(
                message=f"The {description} file {display} is password protected.",
                remediation="Remove the password or export an unencrypted copy before retrying.",
            )
        if not reader.pages:
            raise PdfExtractionError(
                message=f"The {description} file {display} does not contain any pages.",
                remediation="Export the report as a standard PDF and retry.",
            )

        pages = [text for text in _iter_page_texts(reader, display) if text]

    if not pages:
        raise PdfExtractionError(
            message=f"The {description} file {display} appears to be image-only.",
            remediation="Run OCR and export a text-based PDF before scanning it.",
        )

    logger.debug("Extracted PDF text", extra={"path": display, "page_count": len(pages)})
    return LoadedDocument(
        path=path, text="\n".join(pages), encoding=_PDF_ENCODING_LABEL, format="pdf"
    )


def _iter_page_texts(reader: PdfReader, display: str) -> Iterator[str]:
    for number, page in enumerate(reader.pages, start=1):
        try:
            raw_text = page.extract_text() or ""
        except Exception as exc:  # pragma: no cover - pypdf raises a wide range of errors
            raise PdfExtractionError(
                message=f"Text extraction failed on page {number} of {display}.",
                remediation="Re-export the report as a searchable PDF and retry.",
            ) from exc
        yield collapse_whitespace(raw_text)


__all__ = ["extract_text"]
