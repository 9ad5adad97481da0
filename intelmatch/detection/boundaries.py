"""Boundary classification and accepted-range bookkeeping for one scan pass."""
from __future__ import annotations

from typing import Iterable, Iterator

from intelmatch.detection.models import CharRange

# '.', '-', '_' and square brackets join identifier parts and are never boundaries.
_JOINING_SYMBOLS = frozenset(".-_[]")


def is_valid_boundary(char: str | None) -> bool:
    """Return True when *char* may legally precede or follow a literal match.

    Any letter or digit (Unicode included) continues the identifier, as do the
    joining symbols. Whitespace and every other symbol, typographic quotes and
    dashes included, ends it.
    """

    if not char:
        return True
    return not char.isalnum() and char not in _JOINING_SYMBOLS


def has_valid_boundaries(text: str, start: int, end: int) -> bool:
    """Check the characters on both sides of ``text[start:end]``."""

    before = text[start - 1] if start > 0 else None
    after = text[end] if end < len(text) else None
    return is_valid_boundary(before) and is_valid_boundary(after)


def create_range_key(start: int, end: int) -> str:
    return f"{start}-{end}"


def parse_range_key(key: str) -> CharRange:
    start, _, end = key.partition("-")
    return CharRange(int(start), int(end))


def has_overlapping_range(start: int, end: int, accepted: Iterable[str]) -> bool:
    """Return True if ``[start, end)`` shares an offset with any accepted range key.

    Touching ranges (one ends where the other starts) do not overlap.
    """

    candidate = CharRange(start, end)
    return any(candidate.overlaps(parse_range_key(key)) for key in accepted)


class AcceptedRangeSet:
    """Range keys accepted during a single scan pass, discarded afterwards."""

    def __init__(self) -> None:
        self._keys: dict[str, CharRange] = {}

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[str]:
        return iter(self._keys)

    def __len__(self) -> int:
        return len(self._keys)

    def overlaps(self, start: int, end: int) -> bool:
        candidate = CharRange(start, end)
        return any(candidate.overlaps(existing) for existing in self._keys.values())

    def add(self, start: int, end: int) -> bool:
        """Accept ``[start, end)`` unless it overlaps an earlier range.

        Returns False, leaving the set unchanged, when the range is rejected.
        """

        if self.overlaps(start, end):
            return False
        self._keys[create_range_key(start, end)] = CharRange(start, end)
        return True

    def discard(self, start: int, end: int) -> None:
        self._keys.pop(create_range_key(start, end), None)


__all__ = [
    "AcceptedRangeSet",
    "create_range_key",
    "has_overlapping_range",
    "has_valid_boundaries",
    "is_valid_boundary",
    "parse_range_key",
]
