"""Character-precise detection of known identifiers in page text."""

from __future__ import annotations

from .boundaries import (
    AcceptedRangeSet,
    create_range_key,
    has_overlapping_range,
    has_valid_boundaries,
    is_valid_boundary,
    parse_range_key,
)
from .identifiers import (
    IdentifierKind,
    classify_identifier,
    is_ip_address,
    is_mac_address,
    is_mitre_id,
    is_parent_mitre_id,
    needs_manual_boundary_check,
)
from .models import Candidate, CharRange, DetectedMatch, DetectedObservable
from .observables import detect_observable_type, detect_observables, is_defanged, refang_indicator
from .patterns import create_matching_regex, escape_regex
from .scanner import scan_text

__all__ = [
    "AcceptedRangeSet",
    "Candidate",
    "CharRange",
    "DetectedMatch",
    "DetectedObservable",
    "IdentifierKind",
    "classify_identifier",
    "create_matching_regex",
    "create_range_key",
    "detect_observable_type",
    "detect_observables",
    "escape_regex",
    "has_overlapping_range",
    "has_valid_boundaries",
    "is_defanged",
    "is_ip_address",
    "is_mac_address",
    "is_mitre_id",
    "is_parent_mitre_id",
    "is_valid_boundary",
    "needs_manual_boundary_check",
    "parse_range_key",
    "refang_indicator",
    "scan_text",
]
