"""Registry of platform families and their entity type prefixes."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Tuple

from intelmatch.reconciliation.models import KNOWLEDGE_BASE_TYPE, PlatformInfo


@dataclass(frozen=True)
class PlatformFamily:
    """A kind of platform; every configured instance belongs to one family."""

    type: str
    prefix: str
    display_name: str


@dataclass(frozen=True)
class PrefixedType:
    prefix: str
    entity_type: str
    platform_type: str


PLATFORM_FAMILIES: Mapping[str, PlatformFamily] = {
    "opencti": PlatformFamily("opencti", "octi", "OpenCTI"),
    "openaev": PlatformFamily("openaev", "oaev", "OpenAEV"),
    "opengrc": PlatformFamily("opengrc", "ogrc", "OpenGRC"),
}

PREFIX_TO_PLATFORM: Mapping[str, str] = {
    family.prefix: family.type for family in PLATFORM_FAMILIES.values()
}

# Canonical display name -> equivalent lower-cased types across families.
CROSS_PLATFORM_TYPE_MAPPINGS: Mapping[str, Tuple[str, ...]] = {
    "Attack Pattern": ("attack-pattern", "attackpattern", "oaev-attackpattern"),
    "Organization": ("organization", "oaev-organization"),
    "Vulnerability": ("vulnerability", "oaev-vulnerability", "cve"),
}

_CAMEL_BOUNDARY_RE = re.compile(r"([a-z])([A-Z])")


def parse_prefixed_type(value: str) -> PrefixedType | None:
    """Split ``oaev-Asset`` into its family prefix and bare type.

    Returns ``None`` for unprefixed types, which belong to the knowledge base.
    """

    for family in PLATFORM_FAMILIES.values():
        marker = f"{family.prefix}-"
        if value.startswith(marker):
            return PrefixedType(family.prefix, value[len(marker) :], family.type)
    return None


def prefix_entity_type(entity_type: str, platform_type: str) -> str:
    """Tag *entity_type* with its family prefix; knowledge-base types stay bare."""

    family = PLATFORM_FAMILIES.get(platform_type)
    if family is None or family.type == KNOWLEDGE_BASE_TYPE:
        return entity_type
    if entity_type.startswith(f"{family.prefix}-"):
        return entity_type
    return f"{family.prefix}-{entity_type}"


def clean_entity_type(value: str) -> str:
    parsed = parse_prefixed_type(value)
    return parsed.entity_type if parsed else value


def infer_platform_type(entity_type: str | None) -> str:
    if not entity_type:
        return KNOWLEDGE_BASE_TYPE
    parsed = parse_prefixed_type(entity_type)
    return parsed.platform_type if parsed else KNOWLEDGE_BASE_TYPE


def _comparable_type(value: str) -> str:
    return clean_entity_type(value).lower()


def canonical_type_name(value: str) -> str:
    """Display name shared by equivalent types across families."""

    comparable = _comparable_type(value)
    for canonical, equivalents in CROSS_PLATFORM_TYPE_MAPPINGS.items():
        if any(_comparable_type(candidate) == comparable for candidate in equivalents):
            return canonical
    return _CAMEL_BOUNDARY_RE.sub(r"\1 \2", clean_entity_type(value).replace("-", " "))


def unique_canonical_types(types: Iterable[str]) -> Tuple[str, ...]:
    return tuple(dict.fromkeys(canonical_type_name(value) for value in types))


def find_platform(
    platforms: Iterable[PlatformInfo],
    platform_id: str | None,
    platform_type: str | None = None,
) -> PlatformInfo | None:
    """Look a platform up by id, else by family when *platform_type* is given."""

    known = tuple(platforms)
    for platform in known:
        if platform.id == platform_id:
            return platform
    if platform_type:
        for platform in known:
            if platform.type == platform_type:
                return platform
    return None


def family_display_name(platform_type: str) -> str:
    family = PLATFORM_FAMILIES.get(platform_type)
    return family.display_name if family else platform_type


__all__ = [
    "CROSS_PLATFORM_TYPE_MAPPINGS",
    "PLATFORM_FAMILIES",
    "PREFIX_TO_PLATFORM",
    "PlatformFamily",
    "PrefixedType",
    "canonical_type_name",
    "clean_entity_type",
    "family_display_name",
    "find_platform",
    "infer_platform_type",
    "parse_prefixed_type",
    "prefix_entity_type",
    "unique_canonical_types",
]
