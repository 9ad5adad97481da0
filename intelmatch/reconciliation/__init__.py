"""Merging of per-platform scan results and multi-platform entity resolution."""

from __future__ import annotations

from .aggregation import (
    aggregate_scan_results,
    filter_entities,
    is_found_in_knowledge_base,
    is_selectable_for_knowledge_base,
    unique_types,
)
from .models import (
    EntityView,
    MultiPlatformResult,
    PlatformInfo,
    PlatformMatch,
    ScanBatch,
    ScanResultEntity,
    group_key,
)
from .platforms import (
    canonical_type_name,
    clean_entity_type,
    find_platform,
    parse_prefixed_type,
    prefix_entity_type,
)
from .resolver import (
    DetailFetchOutcome,
    FetchTicket,
    PlatformNavigator,
    build_multi_platform_results,
    resolve_entity,
    sort_platform_results,
)

__all__ = [
    "DetailFetchOutcome",
    "EntityView",
    "FetchTicket",
    "MultiPlatformResult",
    "PlatformInfo",
    "PlatformMatch",
    "PlatformNavigator",
    "ScanBatch",
    "ScanResultEntity",
    "aggregate_scan_results",
    "build_multi_platform_results",
    "canonical_type_name",
    "clean_entity_type",
    "filter_entities",
    "find_platform",
    "group_key",
    "is_found_in_knowledge_base",
    "is_selectable_for_knowledge_base",
    "parse_prefixed_type",
    "prefix_entity_type",
    "resolve_entity",
    "sort_platform_results",
    "unique_types",
]
