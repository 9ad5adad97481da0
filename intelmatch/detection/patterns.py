"""Compile literal candidate names into safe, case-insensitive search patterns."""
from __future__ import annotations

import re
from functools import lru_cache

from intelmatch.detection.identifiers import IdentifierKind, classify_identifier

_METACHARACTERS_RE = re.compile(r"[.*+?^${}()|\[\]\\]")
_COMPOUND_CHARACTERS_RE = re.compile(r"[.\-_@]")


def escape_regex(value: str) -> str:
    """Escape every regex metacharacter so *value* matches only itself."""

    return _METACHARACTERS_RE.sub(lambda match: "\\" + match.group(0), value)


@lru_cache(maxsize=2048)
def create_matching_regex(name: str) -> re.Pattern[str]:
    """Build the search pattern for *name*; iterate it with ``finditer``.

    IP and MAC addresses are anchored with lookarounds so ``192.168.1.1`` never
    matches inside ``192.168.1.100``. Names containing ``.``, ``-``, ``_`` or
    ``@`` are searched as bare literals because ``\\b`` misfires around those
    characters; callers must confirm generic matches with
    :func:`intelmatch.detection.boundaries.has_valid_boundaries`.
    """

    escaped = escape_regex(name)
    kind = classify_identifier(name)

    if kind in (IdentifierKind.IP, IdentifierKind.MAC):
        source = rf"(?<![\w.]){escaped}(?![\w.])"
    elif kind is IdentifierKind.MITRE_ID:
        source = rf"\b{escaped}\b"
    elif _COMPOUND_CHARACTERS_RE.search(name):
        source = escaped
    else:
        # \b cannot anchor names that start or end with a symbol such as "C++".
        source = rf"(?<!\w){escaped}(?!\w)"

    return re.compile(source, re.IGNORECASE)


__all__ = ["create_matching_regex", "escape_regex"]
