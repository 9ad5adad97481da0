"""Dataclasses describing candidates and matches within one scan pass."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple

from intelmatch.detection.identifiers import IdentifierKind, classify_identifier


@dataclass(frozen=True)
class CharRange:
    """Half-open ``[start, end)`` span of code point offsets into the scanned text."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid range {self.start}-{self.end}")

    @property
    def key(self) -> str:
        return f"{self.start}-{self.end}"

    def overlaps(self, other: "CharRange") -> bool:
        """Return True when both ranges share at least one offset."""

        return not (self.end <= other.start or self.start >= other.end)


@dataclass(frozen=True)
class Candidate:
    """A named identifier supplied by a platform adapter or a fixed grammar."""

    name: str
    value: str | None = None
    kind: IdentifierKind | None = None
    entity_id: str | None = None
    entity_type: str = "Unknown"
    platform_id: str | None = None
    platform_type: str = "opencti"
    aliases: Tuple[str, ...] = ()
    entity_data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        object.__setattr__(self, "aliases", tuple(self.aliases))
        if self.value is None:
            object.__setattr__(self, "value", self.name)
        if self.kind is None:
            object.__setattr__(self, "kind", classify_identifier(self.name))

    @property
    def identity(self) -> str:
        """Key used to report a candidate at most once per pass."""

        return self.entity_id or self.name.casefold()

    @property
    def search_terms(self) -> Tuple[str, ...]:
        """Name followed by its aliases, deduplicated case-insensitively."""

        seen: set[str] = set()
        terms: list[str] = []
        for term in (self.name, *self.aliases):
            stripped = term.strip()
            folded = stripped.casefold()
            if stripped and folded not in seen:
                seen.add(folded)
                terms.append(stripped)
        return tuple(terms)


@dataclass(frozen=True)
class DetectedMatch:
    """An accepted occurrence of a candidate inside the scanned text."""

    candidate: Candidate
    matched_text: str
    span: CharRange
    context_snippet: str = ""

    def as_scan_record(self) -> dict[str, Any]:
        """Shape the match like a platform adapter's detection record."""

        candidate = self.candidate
        record: dict[str, Any] = {
            "type": candidate.entity_type,
            "name": candidate.name,
            "value": candidate.value,
            "found": candidate.entity_id is not None,
            "entityId": candidate.entity_id,
            "platformId": candidate.platform_id,
            "platformType": candidate.platform_type,
            "entityData": dict(candidate.entity_data),
            "startIndex": self.span.start,
            "endIndex": self.span.end,
        }
        if self.matched_text != candidate.name:
            record["matchedValue"] = self.matched_text
        return record


@dataclass(frozen=True)
class DetectedObservable:
    """A fixed-grammar indicator found in raw text, possibly defanged."""

    type: str
    value: str
    refanged_value: str
    is_defanged: bool
    span: CharRange
    context_snippet: str = ""
    hash_type: str | None = None

    @property
    def dedupe_key(self) -> str:
        return f"{self.type}:{self.refanged_value.lower()}"

    def as_scan_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {
            "type": self.type,
            "value": self.refanged_value,
            "found": False,
            "startIndex": self.span.start,
            "endIndex": self.span.end,
        }
        if self.value != self.refanged_value:
            record["matchedValue"] = self.value
        if self.hash_type:
            record["hashType"] = self.hash_type
        return record


__all__ = ["Candidate", "CharRange", "DetectedMatch", "DetectedObservable"]
