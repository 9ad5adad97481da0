"""Reading saved page captures from disk."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from intelmatch.errors import InputValidationError

# Tried in order; CP1252 decodes any byte it is given except five.
_PAGE_ENCODINGS: tuple[str, ...] = ("utf-8-sig", "cp1252")
_ENCODING_LABELS: dict[str, str] = {
    "utf-8-sig": "UTF-8 (with BOM)",
    "utf-8": "UTF-8",
    "cp1252": "Windows-1252",
    "pdf": "PDF text layer",
}
PAGE_FORMATS = ("text", "html", "pdf")


@dataclass(frozen=True)
class LoadedDocument:
    """Scannable text of one page capture.

    ``text`` is what the scanners see; every reported offset indexes into it.
    ``format`` records where it came from (``text``, ``html`` or ``pdf``).
    """

    path: Path
    text: str
    encoding: str
    format: str = "text"

    @property
    def display_name(self) -> str:
        return format_display_path(self.path)

    @property
    def display_encoding(self) -> str:
        label = _ENCODING_LABELS.get(self.encoding, self.encoding)
        if self.format == "html":
            return f"HTML, {label}"
        return label


def normalize_newlines(text: str) -> str:
    """Convert CRLF and bare CR line endings to LF."""

    if "\r" not in text:
        return text

    # Text saved through Windows text mode can carry `\r\r\n`.
    for sequence in ("\r\r\n", "\r\n", "\r"):
        text = text.replace(sequence, "\n")
    return text


def format_display_path(path: Path) -> str:
    name = path.name
    return f'"{name}"' if " " in name else name


def read_page_bytes(path: Path, description: str) -> bytes:
    try:
        return path.read_bytes()
    except OSError as exc:
        raise InputValidationError(
            message=f"Unable to read the {description} file {format_display_path(path)}.",
            remediation="Check file permissions and that no other process holds a lock on it.",
        ) from exc


def decode_page_bytes(data: bytes, path: Path, description: str) -> tuple[str, str]:
    """Decode a page capture, returning ``(text, encoding)`` with LF line endings."""

    last_error: UnicodeDecodeError | None = None
    for encoding in _PAGE_ENCODINGS:
        try:
            decoded = data.decode(encoding)
        except UnicodeDecodeError as exc:
            last_error = exc
            continue
        return normalize_newlines(decoded), encoding

    supported = " or ".join(_ENCODING_LABELS[name] for name in _PAGE_ENCODINGS)
    raise InputValidationError(
        message=f"The {description} file {format_display_path(path)} is not encoded as {supported}.",
        remediation="Save the page again as UTF-8 and rerun the scan.",
    ) from last_error


def load_text_document(path: Path, description: str) -> LoadedDocument:
    """Read a plain-text page capture."""

    text, encoding = decode_page_bytes(read_page_bytes(path, description), path, description)
    return LoadedDocument(path=path, text=text, encoding=encoding)


__all__ = [
    "LoadedDocument",
    "PAGE_FORMATS",
    "decode_page_bytes",
    "format_display_path",
    "load_text_document",
    "normalize_newlines",
    "read_page_bytes",
]
