"""Domain-specific exception hierarchy for Intelmatch."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass
class IntelmatchError(Exception):
    """Base exception for Intelmatch errors with optional remediation text."""

    message: str
    remediation: str | None = None

    def __post_init__(self) -> None:  # pragma: no cover - dataclass validation hook
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class InputValidationError(IntelmatchError):
    """Raised when a command or record is missing mandatory input."""


class PdfExtractionError(IntelmatchError):
    """Raised when page text cannot be extracted from a PDF."""


class PlatformConfigError(IntelmatchError):
    """Raised when the platforms or candidates configuration is invalid."""


class DetailFetchError(IntelmatchError):
    """Raised when a platform rejects or fails an entity detail request."""


class TimeoutExceededError(IntelmatchError):
    """Raised when a platform round trip exceeds its allotted time."""


__all__ = [
    "IntelmatchError",
    "InputValidationError",
    "PdfExtractionError",
    "PlatformConfigError",
    "DetailFetchError",
    "TimeoutExceededError",
]
