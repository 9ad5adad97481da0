"""Scan page text for the literal names of known candidates."""
from __future__ import annotations

import logging
import re
from typing import Iterable, Tuple

from intelmatch.detection.boundaries import AcceptedRangeSet, has_valid_boundaries
from intelmatch.detection.identifiers import IdentifierKind, classify_identifier, is_parent_mitre_id
from intelmatch.detection.models import Candidate, CharRange, DetectedMatch
from intelmatch.detection.patterns import create_matching_regex
from intelmatch.utils.text import build_context_snippet

logger = logging.getLogger("intelmatch.detection.scanner")

DEFAULT_MIN_LENGTH = 3
SIMULATION_MIN_LENGTH = 4

_SUB_TECHNIQUE_TAIL_RE = re.compile(r"\.[0-9]")


def scan_text(
    text: str,
    candidates: Iterable[Candidate],
    *,
    min_length: int = DEFAULT_MIN_LENGTH,
    context_window: int = 50,
) -> Tuple[DetectedMatch, ...]:
    """Return the first valid occurrence of each candidate inside *text*.

    Search terms (names and aliases) are tried longest first so a longer name
    claims its span before any shorter name contained in it. Terms of equal
    length keep the order in which their candidates were supplied, so the
    first registered candidate wins an identical overlap.
    """

    if min_length < 1:
        raise ValueError("min_length must be at least 1")

    registered = tuple(candidates)
    terms: list[tuple[str, int]] = [
        (term, index)
        for index, candidate in enumerate(registered)
        for term in candidate.search_terms
    ]
    terms.sort(key=lambda entry: -len(entry[0]))

    accepted = AcceptedRangeSet()
    seen: set[str] = set()
    matches: list[DetectedMatch] = []

    for term, index in terms:
        candidate = registered[index]
        if candidate.identity in seen or len(term) < min_length:
            continue

        match = _first_valid_occurrence(text, term, accepted)
        if match is None:
            continue

        seen.add(candidate.identity)
        matches.append(
            DetectedMatch(
                candidate=candidate,
                matched_text=text[match.start : match.end],
                span=match,
                context_snippet=build_context_snippet(
                    text, (match.start, match.end), context_window
                ),
            )
        )

    matches.sort(key=lambda item: (item.span.start, item.span.end))
    logger.debug(
        "Scanned text for candidates",
        extra={"candidate_count": len(registered), "match_count": len(matches)},
    )
    return tuple(matches)


def _first_valid_occurrence(
    text: str, term: str, accepted: AcceptedRangeSet
) -> CharRange | None:
    kind = classify_identifier(term)
    folded = term.casefold()
    pattern = create_matching_regex(term)

    for found in pattern.finditer(text):
        start, end = found.span()
        if found.group(0).casefold() != folded:
            continue
        # "T1059" followed by ".001" is the head of a sub-technique.
        if kind is IdentifierKind.MITRE_ID and is_parent_mitre_id(term) and _SUB_TECHNIQUE_TAIL_RE.match(text, end):
            continue
        if kind.needs_manual_boundary_check and not has_valid_boundaries(text, start, end):
            continue
        if accepted.add(start, end):
            return CharRange(start, end)
    return None


__all__ = ["DEFAULT_MIN_LENGTH", "SIMULATION_MIN_LENGTH", "scan_text"]
