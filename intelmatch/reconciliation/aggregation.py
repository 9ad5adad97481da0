"""Fold per-platform detection batches into one record per logical entity."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Iterator, Mapping, Tuple

from intelmatch.errors import InputValidationError
from intelmatch.reconciliation.models import (
    KNOWLEDGE_BASE_TYPE,
    PlatformMatch,
    ScanBatch,
    ScanResultEntity,
    group_key,
    read_field,
)
from intelmatch.reconciliation.platforms import (
    canonical_type_name,
    parse_prefixed_type,
    prefix_entity_type,
    unique_canonical_types,
)

logger = logging.getLogger("intelmatch.reconciliation.aggregation")

SIMULATION_PLATFORM_TYPE = "openaev"

# Simulation entity types and the field carrying their identifier.
_SIMULATION_ID_FIELDS: Mapping[str, Tuple[str, ...]] = {
    "Asset": ("endpoint_id", "asset_id", "id"),
    "AssetGroup": ("asset_group_id", "id"),
    "Player": ("user_id", "id"),
    "User": ("user_id", "id"),
    "Team": ("team_id", "id"),
    "Organization": ("organization_id", "id"),
    "Scenario": ("scenario_id", "id"),
    "Exercise": ("exercise_id", "id"),
    "AttackPattern": ("attack_pattern_id", "id"),
    "Finding": ("finding_id", "id"),
    "Vulnerability": ("vulnerability_id", "id"),
}
_DEFAULT_SIMULATION_ID_FIELDS = ("_id", "id")

FOUND_FILTERS = ("all", "found", "not-found", "ai-discovered")


@dataclass
class _EntityGroup:
    """Mutable accumulator for one group key, local to a single aggregation call."""

    base: ScanResultEntity
    found: bool
    platform_matches: list[PlatformMatch] = field(default_factory=list)
    matched_strings: list[str] = field(default_factory=list)

    def add_match(self, match: PlatformMatch) -> None:
        if all(existing.identity != match.identity for existing in self.platform_matches):
            self.platform_matches.append(match)
        self.found = True

    def add_matched_string(self, value: str | None) -> None:
        if not value:
            return
        folded = value.casefold()
        if all(existing.casefold() != folded for existing in self.matched_strings):
            self.matched_strings.append(value)

    def freeze(self) -> ScanResultEntity:
        base = self.base
        return ScanResultEntity(
            id=base.id,
            type=base.type,
            name=base.name,
            value=base.value,
            found=self.found,
            platform_matches=tuple(self.platform_matches),
            matched_strings=tuple(self.matched_strings),
            discovered_by_ai=base.discovered_by_ai,
            ai_reason=base.ai_reason,
            ai_confidence=base.ai_confidence,
            entity_id=base.entity_id,
            platform_id=base.platform_id,
            platform_type=base.platform_type,
            entity_data=base.entity_data,
        )


@dataclass(frozen=True)
class _Contribution:
    entity: ScanResultEntity
    matched_string: str | None


def aggregate_scan_results(
    batch: ScanBatch | Mapping[str, Any],
    existing: Iterable[ScanResultEntity] | None = None,
) -> Tuple[ScanResultEntity, ...]:
    """Merge a scan's detection batches into deduplicated scan result entities.

    Records are grouped by the normalized display name. A record that was found
    on a platform contributes a :class:`PlatformMatch`, suppressed when the same
    ``(platform_id, platform_type, type, entity_id)`` is already present. A group
    is found as soon as one contributing record is. Entities in *existing* seed
    the groups, in order, before the batch is folded in. AI suggestions are
    appended last and never merged. A record without a name is kept under a
    ``{prefix}-{type}-{index}`` stand-in such as ``sdo-Malware-1``.
    """

    if not isinstance(batch, ScanBatch):
        batch = ScanBatch.from_mapping(batch)

    groups: dict[str, _EntityGroup] = {}

    for entity in existing or ():
        _merge(groups, _Contribution(entity, None))

    for contribution in _iter_contributions(batch):
        _merge(groups, contribution)

    results = [group.freeze() for group in groups.values()]
    results.extend(_ai_entity(record, index) for index, record in enumerate(batch.ai_entities))

    logger.info(
        "Aggregated scan results",
        extra={
            "record_count": len(batch),
            "entity_count": len(results),
            "found_count": sum(1 for entity in results if entity.found),
        },
    )
    return tuple(results)


def _merge(groups: dict[str, _EntityGroup], contribution: _Contribution) -> None:
    entity = contribution.entity
    key = group_key(entity.name)
    group = groups.get(key)

    if group is None:
        group = _EntityGroup(base=entity, found=entity.found)
        groups[key] = group
    elif entity.found:
        group.found = True

    if entity.found:
        if entity.platform_matches:
            for match in entity.platform_matches:
                group.add_match(match)
        else:
            group.add_match(
                PlatformMatch(
                    platform_id=entity.platform_id or "",
                    platform_type=entity.platform_type or KNOWLEDGE_BASE_TYPE,
                    entity_id=entity.entity_id,
                    type=entity.type,
                    entity_data=entity.entity_data,
                )
            )

    for value in entity.matched_strings:
        group.add_matched_string(value)
    group.add_matched_string(contribution.matched_string)


def _iter_contributions(batch: ScanBatch) -> Iterator[_Contribution]:
    for index, record in enumerate(batch.observables):
        entity_type = str(read_field(record, "type", default="Unknown"))
        value = _display_name(record, "obs", entity_type, index, "value", "name")
        yield _contribution(
            record,
            name=value,
            value=value,
            entity_type=entity_type,
            fallback_id=f"obs-{value}",
            platform_type=str(read_field(record, "platformType", "platform_type", default=KNOWLEDGE_BASE_TYPE)),
            found=_found_flag(record, default=False),
        )

    for index, record in enumerate(batch.sdos):
        entity_type = str(read_field(record, "type", default="Unknown"))
        name = _display_name(record, "sdo", entity_type, index, "name")
        yield _contribution(
            record,
            name=name,
            value=name,
            entity_type=entity_type,
            fallback_id=f"sdo-{name}",
            platform_type=str(read_field(record, "platformType", "platform_type", default=KNOWLEDGE_BASE_TYPE)),
            found=_found_flag(record, default=False),
        )

    for index, record in enumerate(batch.cves):
        name = _display_name(record, "cve", "Vulnerability", index, "name")
        yield _contribution(
            record,
            name=name,
            value=name,
            entity_type="Vulnerability",
            fallback_id=f"cve-{name}",
            platform_type=str(read_field(record, "platformType", "platform_type", default=KNOWLEDGE_BASE_TYPE)),
            found=_found_flag(record, default=False),
        )

    for index, record in enumerate(batch.platform_entities):
        platform_type = str(
            read_field(record, "platformType", "platform_type", default=SIMULATION_PLATFORM_TYPE)
        )
        raw_type = str(read_field(record, "type", default=""))
        name = _display_name(record, platform_type, raw_type or "Unknown", index, "name")
        entity_id = read_field(record, "entityId", "entity_id")
        if not entity_id:
            if platform_type == SIMULATION_PLATFORM_TYPE:
                details = read_field(record, "entityData", "entity_data", default=record)
                if not isinstance(details, Mapping):
                    details = record
                entity_id = simulation_entity_id(details, raw_type)
            else:
                entity_id = read_field(record, "id")
        yield _contribution(
            record,
            name=name,
            value=str(read_field(record, "value", default=name)),
            entity_type=prefix_entity_type(raw_type, platform_type),
            fallback_id=f"{platform_type}-{name}",
            platform_type=platform_type,
            found=_found_flag(record, default=True),
            entity_id=entity_id or None,
        )


def _contribution(
    record: Mapping[str, Any],
    *,
    name: str,
    value: str,
    entity_type: str,
    fallback_id: str,
    platform_type: str,
    found: bool,
    entity_id: str | None = None,
) -> _Contribution:
    entity_id = entity_id or read_field(record, "entityId", "entity_id")
    carried = tuple(
        PlatformMatch.from_mapping(item, default_type=entity_type, default_platform_type=platform_type)
        for item in read_field(record, "platformMatches", "platform_matches", default=())
        if isinstance(item, Mapping)
    )
    entity = ScanResultEntity(
        id=str(entity_id or read_field(record, "id", default=fallback_id)),
        type=entity_type,
        name=name,
        value=value,
        found=found,
        platform_matches=carried,
        matched_strings=tuple(read_field(record, "matchedStrings", "matched_strings", default=())),
        entity_id=entity_id,
        platform_id=read_field(record, "platformId", "platform_id"),
        platform_type=platform_type,
        entity_data=dict(record),
    )
    matched = read_field(record, "matchedValue", "matched_value", "value", "name")
    return _Contribution(entity, str(matched) if matched is not None else None)


def _ai_entity(record: Mapping[str, Any], index: int) -> ScanResultEntity:
    entity_type = str(read_field(record, "type", default="Unknown"))
    value = _display_name(record, "ai", entity_type, index, "value", "name")
    return ScanResultEntity(
        id=str(read_field(record, "id", default=f"ai-{index}")),
        type=entity_type,
        name=str(read_field(record, "name", default=value)),
        value=value,
        found=False,
        discovered_by_ai=True,
        ai_reason=read_field(record, "aiReason", "ai_reason", "reason"),
        ai_confidence=read_field(record, "aiConfidence", "ai_confidence", "confidence"),
    )


def _display_name(
    record: Mapping[str, Any], prefix: str, entity_type: str, index: int, *fields: str
) -> str:
    """Return the record's display name, or a positional stand-in when it has none."""

    for name in fields:
        value = record.get(name)
        if isinstance(value, str) and value.strip():
            return value
    synthetic = f"{prefix}-{entity_type}-{index}"
    logger.warning(
        "Detection record has no usable name",
        extra={"name_fields": fields, "synthetic_name": synthetic},
    )
    return synthetic


def _found_flag(record: Mapping[str, Any], *, default: bool) -> bool:
    value = record.get("found")
    return value if isinstance(value, bool) else default


def simulation_entity_id(record: Mapping[str, Any], entity_type: str) -> str:
    """Resolve the identifier of a simulation-platform entity from its type-specific field."""

    fields = _SIMULATION_ID_FIELDS.get(entity_type, _DEFAULT_SIMULATION_ID_FIELDS)
    return str(read_field(record, *fields, default=""))


def is_found_in_knowledge_base(entity: ScanResultEntity) -> bool:
    """Return True when the knowledge-base family confirmed the entity."""

    if not entity.found:
        return False
    if entity.platform_matches:
        return any(match.platform_type == KNOWLEDGE_BASE_TYPE for match in entity.platform_matches)
    return entity.platform_type in (None, KNOWLEDGE_BASE_TYPE)


def is_selectable_for_knowledge_base(entity: ScanResultEntity) -> bool:
    """Family-prefixed entity types cannot be imported into the knowledge base."""

    return parse_prefixed_type(entity.type) is None


def filter_entities(
    entities: Iterable[ScanResultEntity],
    found_filter: str = "all",
    type_filter: str = "all",
    search_query: str = "",
) -> Tuple[ScanResultEntity, ...]:
    """Apply the found/type/search filters of the results view."""

    if found_filter not in FOUND_FILTERS:
        raise InputValidationError(
            message=f"Unknown found filter '{found_filter}'.",
            remediation=f"Use one of: {', '.join(FOUND_FILTERS)}.",
        )

    filtered = list(entities)
    if found_filter == "found":
        filtered = [entity for entity in filtered if entity.found and not entity.discovered_by_ai]
    elif found_filter == "not-found":
        filtered = [entity for entity in filtered if not entity.found and not entity.discovered_by_ai]
    elif found_filter == "ai-discovered":
        filtered = [entity for entity in filtered if entity.discovered_by_ai]

    if type_filter != "all":
        filtered = [entity for entity in filtered if entity.type == type_filter]

    query = search_query.strip().lower()
    if query:
        filtered = [
            entity
            for entity in filtered
            if query in entity.name.lower()
            or query in entity.value.lower()
            or query in entity.type.lower().replace("-", " ")
        ]
    return tuple(filtered)


def unique_types(entity: ScanResultEntity) -> Tuple[str, ...]:
    """Canonical types the entity is known under, equivalent types collapsed."""

    if not entity.platform_matches:
        return (canonical_type_name(entity.type),)
    return unique_canonical_types(match.type for match in entity.platform_matches)


__all__ = [
    "FOUND_FILTERS",
    "aggregate_scan_results",
    "filter_entities",
    "is_found_in_knowledge_base",
    "is_selectable_for_knowledge_base",
    "simulation_entity_id",
    "unique_types",
]
