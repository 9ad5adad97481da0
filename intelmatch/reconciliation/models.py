"""Dataclasses describing merged scan results and per-platform views."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterable, Mapping, Tuple

from intelmatch.utils.text import collapse_whitespace

KNOWLEDGE_BASE_TYPE = "opencti"


def group_key(name: str) -> str:
    """Canonical merge key: lower-cased, trimmed, inner whitespace collapsed."""

    return collapse_whitespace(name or "").lower()


def read_field(record: Mapping[str, Any], *names: str, default: Any = None) -> Any:
    """Return the first non-empty value among *names* (camelCase or snake_case)."""

    for name in names:
        value = record.get(name)
        if value is not None and value != "":
            return value
    return default


@dataclass(frozen=True)
class PlatformInfo:
    """One configured platform instance."""

    id: str
    name: str
    type: str = KNOWLEDGE_BASE_TYPE
    url: str = ""
    detail_url: str | None = None

    @property
    def is_knowledge_base(self) -> bool:
        return self.type == KNOWLEDGE_BASE_TYPE


@dataclass(frozen=True)
class PlatformMatch:
    """Confirmation that an entity exists on one platform under one type."""

    platform_id: str
    platform_type: str
    entity_id: str | None
    type: str
    entity_data: Mapping[str, Any] = field(default_factory=dict)

    @property
    def identity(self) -> Tuple[str, str, str, str | None]:
        """A single platform may classify the same text under two entity types."""

        return (self.platform_id, self.platform_type, self.type, self.entity_id)

    @classmethod
    def from_mapping(
        cls,
        record: Mapping[str, Any],
        *,
        default_type: str = "",
        default_platform_type: str = KNOWLEDGE_BASE_TYPE,
    ) -> "PlatformMatch":
        entity_data = read_field(record, "entityData", "entity_data", default={})
        return cls(
            platform_id=str(read_field(record, "platformId", "platform_id", default="")),
            platform_type=str(
                read_field(record, "platformType", "platform_type", default=default_platform_type)
            ),
            entity_id=read_field(record, "entityId", "entity_id"),
            type=str(read_field(record, "type", default=default_type)),
            entity_data=dict(entity_data) if isinstance(entity_data, Mapping) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "platformId": self.platform_id,
            "platformType": self.platform_type,
            "entityId": self.entity_id,
            "type": self.type,
            "entityData": dict(self.entity_data),
        }


@dataclass(frozen=True)
class ScanResultEntity:
    """Canonical, deduplicated record for one logical entity of a scan."""

    id: str
    type: str
    name: str
    value: str
    found: bool
    platform_matches: Tuple[PlatformMatch, ...] = ()
    matched_strings: Tuple[str, ...] = ()
    discovered_by_ai: bool = False
    ai_reason: str | None = None
    ai_confidence: str | None = None
    entity_id: str | None = None
    platform_id: str | None = None
    platform_type: str | None = None
    entity_data: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        object.__setattr__(self, "platform_matches", tuple(self.platform_matches))
        object.__setattr__(self, "matched_strings", tuple(self.matched_strings))

    @property
    def group_key(self) -> str:
        return group_key(self.name)

    @property
    def platform_ids(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(match.platform_id for match in self.platform_matches))

    @classmethod
    def from_mapping(cls, record: Mapping[str, Any]) -> "ScanResultEntity":
        name = str(read_field(record, "name", "value", default=""))
        entity_type = str(read_field(record, "type", default="Unknown"))
        platform_type = read_field(record, "platformType", "platform_type")
        matches = tuple(
            PlatformMatch.from_mapping(
                item,
                default_type=entity_type,
                default_platform_type=platform_type or KNOWLEDGE_BASE_TYPE,
            )
            for item in read_field(record, "platformMatches", "platform_matches", default=())
            if isinstance(item, Mapping)
        )
        entity_data = read_field(record, "entityData", "entity_data", default={})
        return cls(
            id=str(read_field(record, "id", "entityId", "entity_id", default=f"entity-{name}")),
            type=entity_type,
            name=name,
            value=str(read_field(record, "value", default=name)),
            found=bool(record.get("found", False)),
            platform_matches=matches,
            matched_strings=tuple(
                read_field(record, "matchedStrings", "matched_strings", default=())
            ),
            discovered_by_ai=bool(read_field(record, "discoveredByAI", "discovered_by_ai", default=False)),
            ai_reason=read_field(record, "aiReason", "ai_reason"),
            ai_confidence=read_field(record, "aiConfidence", "ai_confidence"),
            entity_id=read_field(record, "entityId", "entity_id"),
            platform_id=read_field(record, "platformId", "platform_id"),
            platform_type=platform_type,
            entity_data=dict(entity_data) if isinstance(entity_data, Mapping) else {},
        )

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "name": self.name,
            "value": self.value,
            "found": self.found,
            "platformMatches": [match.to_dict() for match in self.platform_matches],
            "matchedStrings": list(self.matched_strings),
            "discoveredByAI": self.discovered_by_ai,
        }
        optional = {
            "aiReason": self.ai_reason,
            "aiConfidence": self.ai_confidence,
            "entityId": self.entity_id,
            "platformId": self.platform_id,
            "platformType": self.platform_type,
        }
        payload.update({key: value for key, value in optional.items() if value is not None})
        return payload


@dataclass(frozen=True)
class ScanBatch:
    """Detection records for one scan event, grouped by producer."""

    observables: Tuple[Mapping[str, Any], ...] = ()
    sdos: Tuple[Mapping[str, Any], ...] = ()
    cves: Tuple[Mapping[str, Any], ...] = ()
    platform_entities: Tuple[Mapping[str, Any], ...] = ()
    ai_entities: Tuple[Mapping[str, Any], ...] = ()

    def __post_init__(self) -> None:  # pragma: no cover - simple normalization
        for name in ("observables", "sdos", "cves", "platform_entities", "ai_entities"):
            object.__setattr__(self, name, tuple(getattr(self, name) or ()))

    @classmethod
    def from_mapping(cls, payload: Mapping[str, Any]) -> "ScanBatch":
        def records(*names: str) -> Iterable[Mapping[str, Any]]:
            values = read_field(payload, *names, default=())
            return tuple(item for item in values if isinstance(item, Mapping))

        return cls(
            observables=records("observables"),
            sdos=records("sdos", "openctiEntities", "opencti_entities"),
            cves=records("cves"),
            platform_entities=records(
                "platformEntities", "platform_entities", "openaevEntities", "openaev_entities"
            ),
            ai_entities=records("aiEntities", "ai_entities"),
        )

    def __len__(self) -> int:
        return (
            len(self.observables)
            + len(self.sdos)
            + len(self.cves)
            + len(self.platform_entities)
            + len(self.ai_entities)
        )


@dataclass(frozen=True)
class EntityView:
    """Display-ready projection of one entity as seen on one platform."""

    id: str | None
    entity_id: str | None
    type: str
    clean_type: str
    name: str
    value: str
    platform_id: str
    platform_type: str
    entity_data: Mapping[str, Any] = field(default_factory=dict)
    exists_in_platform: bool = True
    is_non_default_platform: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "entityId": self.entity_id,
            "type": self.type,
            "entity_type": self.clean_type,
            "name": self.name,
            "value": self.value,
            "platformId": self.platform_id,
            "platformType": self.platform_type,
            "entityData": dict(self.entity_data),
            "existsInPlatform": self.exists_in_platform,
            "isNonDefaultPlatform": self.is_non_default_platform,
        }


@dataclass(frozen=True)
class MultiPlatformResult:
    """One platform's view of a logical entity; rebuilt on every show event."""

    platform_id: str
    platform_name: str
    entity: EntityView

    def with_entity_data(self, entity_data: Mapping[str, Any]) -> "MultiPlatformResult":
        merged = {**dict(self.entity.entity_data), **dict(entity_data)}
        merged["entity_type"] = self.entity.clean_type
        return replace(self, entity=replace(self.entity, entity_data=merged))

    def to_dict(self) -> dict[str, Any]:
        return {
            "platformId": self.platform_id,
            "platformName": self.platform_name,
            "entity": self.entity.to_dict(),
        }


__all__ = [
    "EntityView",
    "KNOWLEDGE_BASE_TYPE",
    "MultiPlatformResult",
    "PlatformInfo",
    "PlatformMatch",
    "ScanBatch",
    "ScanResultEntity",
    "group_key",
    "read_field",
]
