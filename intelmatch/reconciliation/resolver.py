"""Resolve one entity's platform matches into an ordered, navigable result list."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, List, Literal, Mapping, Sequence, Tuple

from intelmatch.errors import IntelmatchError
from intelmatch.reconciliation.models import (
    KNOWLEDGE_BASE_TYPE,
    EntityView,
    MultiPlatformResult,
    PlatformInfo,
    PlatformMatch,
    ScanResultEntity,
    read_field,
)
from intelmatch.reconciliation.platforms import (
    clean_entity_type,
    find_platform,
    infer_platform_type,
    parse_prefixed_type,
    prefix_entity_type,
)

logger = logging.getLogger("intelmatch.reconciliation.resolver")

FetchStatus = Literal["applied", "stale", "failed"]
DetailFetcher = Callable[[MultiPlatformResult], Mapping[str, Any]]


def _as_entity(payload: ScanResultEntity | Mapping[str, Any]) -> ScanResultEntity:
    if isinstance(payload, ScanResultEntity):
        return payload
    entity = ScanResultEntity.from_mapping(payload)
    if entity.platform_matches:
        return entity
    # Cached payloads sometimes nest their matches inside the entity data.
    nested = read_field(payload, "entityData", "entity_data", default={})
    if isinstance(nested, Mapping) and read_field(nested, "platformMatches", "platform_matches"):
        merged = dict(payload)
        merged["platformMatches"] = read_field(nested, "platformMatches", "platform_matches")
        return ScanResultEntity.from_mapping(merged)
    return entity


def build_multi_platform_results(
    payload: ScanResultEntity | Mapping[str, Any],
    known_platforms: Iterable[PlatformInfo],
) -> List[MultiPlatformResult]:
    """Build one result per platform match, in match order.

    Each match resolves its platform by exact id, else by any configured
    platform of the same family. When neither exists the raw platform id stands
    in for the platform name and the result is kept.
    """

    entity = _as_entity(payload)
    platforms = tuple(known_platforms)
    return [_result_for_match(entity, match, platforms) for match in entity.platform_matches]


def _result_for_match(
    entity: ScanResultEntity,
    match: PlatformMatch,
    platforms: Tuple[PlatformInfo, ...],
) -> MultiPlatformResult:
    platform = find_platform(platforms, match.platform_id, match.platform_type)
    if platform is None:
        logger.warning(
            "Platform is not configured; showing its raw identifier",
            extra={"platform_id": match.platform_id, "platform_type": match.platform_type},
        )

    platform_type = match.platform_type or (platform.type if platform else KNOWLEDGE_BASE_TYPE)
    match_type = (
        match.type
        or str(read_field(match.entity_data, "entity_type", default=""))
        or entity.type
    )
    clean_type = clean_entity_type(match_type)
    display_type = (
        match_type if parse_prefixed_type(match_type) else prefix_entity_type(match_type, platform_type)
    )
    platform_id = platform.id if platform else match.platform_id

    entity_data = dict(match.entity_data or entity.entity_data)
    entity_data["entity_type"] = clean_type

    view = EntityView(
        id=match.entity_id,
        entity_id=match.entity_id,
        type=display_type,
        clean_type=clean_type,
        name=entity.name or entity.value or str(read_field(match.entity_data, "name", default="")),
        value=entity.value or entity.name,
        platform_id=platform_id,
        platform_type=platform_type,
        entity_data=entity_data,
        exists_in_platform=True,
        is_non_default_platform=platform_type != KNOWLEDGE_BASE_TYPE,
    )
    return MultiPlatformResult(
        platform_id=platform_id,
        platform_name=platform.name if platform else match.platform_id,
        entity=view,
    )


def sort_platform_results(
    results: Iterable[MultiPlatformResult],
    known_platforms: Iterable[PlatformInfo],
) -> List[MultiPlatformResult]:
    """Stable sort putting knowledge-base platforms first.

    A platform id missing from *known_platforms* ranks by the family carried
    on the result, and as knowledge base when it carries none.
    """

    families = {platform.id: platform.type for platform in known_platforms}

    def rank(result: MultiPlatformResult) -> int:
        family = families.get(result.platform_id) or result.entity.platform_type or KNOWLEDGE_BASE_TYPE
        return 0 if family == KNOWLEDGE_BASE_TYPE else 1

    return sorted(results, key=rank)


def resolve_entity(
    payload: ScanResultEntity | Mapping[str, Any],
    known_platforms: Iterable[PlatformInfo],
) -> Tuple[MultiPlatformResult, ...]:
    """Ordered per-platform results for a show-entity event.

    ``known_platforms`` is read once, as of this call.
    """

    platforms = tuple(known_platforms)
    entity = _as_entity(payload)

    if entity.platform_matches:
        results = build_multi_platform_results(entity, platforms)
        return tuple(sort_platform_results(results, platforms))

    if entity.platform_id:
        platform = find_platform(platforms, entity.platform_id)
        platform_type = entity.platform_type or (
            platform.type if platform else infer_platform_type(entity.type)
        )
        clean_type = clean_entity_type(entity.type)
        view = EntityView(
            id=entity.entity_id or entity.id,
            entity_id=entity.entity_id,
            type=entity.type,
            clean_type=clean_type,
            name=entity.name,
            value=entity.value,
            platform_id=entity.platform_id,
            platform_type=platform_type,
            entity_data={**dict(entity.entity_data), "entity_type": clean_type},
            exists_in_platform=entity.found,
            is_non_default_platform=platform_type != KNOWLEDGE_BASE_TYPE,
        )
        return (
            MultiPlatformResult(
                platform_id=entity.platform_id,
                platform_name=platform.name if platform else entity.platform_id,
                entity=view,
            ),
        )

    return ()


@dataclass(frozen=True)
class FetchTicket:
    """Token handed out with a detail fetch; compared again at completion."""

    index: int
    generation: int
    platform_id: str
    entity_id: str | None
    entity_type: str


@dataclass(frozen=True)
class DetailFetchOutcome:
    ticket: FetchTicket
    status: FetchStatus
    error: IntelmatchError | None = None

    @property
    def applied(self) -> bool:
        return self.status == "applied"

    @property
    def stale(self) -> bool:
        return self.status == "stale"


class PlatformNavigator:
    """Own the ordered results of one entity and the current position in them.

    Every :meth:`replace` starts a new generation. A detail fetch is applied
    only when both the generation and the current index still equal the ones
    captured by :meth:`begin_detail_fetch`; otherwise its data is dropped.
    """

    def __init__(self, results: Iterable[MultiPlatformResult] = ()) -> None:
        self._results: list[MultiPlatformResult] = list(results)
        self._index = 0
        self._generation = 0
        self._failures: dict[int, IntelmatchError] = {}

    @classmethod
    def for_entity(
        cls,
        payload: ScanResultEntity | Mapping[str, Any],
        known_platforms: Iterable[PlatformInfo],
    ) -> "PlatformNavigator":
        return cls(resolve_entity(payload, known_platforms))

    @property
    def results(self) -> Tuple[MultiPlatformResult, ...]:
        return tuple(self._results)

    @property
    def current_index(self) -> int:
        return self._index

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def current(self) -> MultiPlatformResult | None:
        if not self._results:
            return None
        return self._results[self._index]

    @property
    def has_multiple(self) -> bool:
        return len(self._results) > 1

    @property
    def can_go_previous(self) -> bool:
        return self._index > 0

    @property
    def can_go_next(self) -> bool:
        return self._index < len(self._results) - 1

    def failure_for(self, index: int) -> IntelmatchError | None:
        return self._failures.get(index)

    def replace(self, results: Sequence[MultiPlatformResult]) -> None:
        self._results = list(results)
        self._index = 0
        self._generation += 1
        self._failures.clear()

    def previous(self) -> MultiPlatformResult | None:
        if self.can_go_previous:
            self._index -= 1
        return self.current

    def next(self) -> MultiPlatformResult | None:
        if self.can_go_next:
            self._index += 1
        return self.current

    def go_to(self, index: int) -> MultiPlatformResult:
        if not 0 <= index < len(self._results):
            raise IndexError(f"platform result index {index} out of range")
        self._index = index
        return self._results[index]

    def begin_detail_fetch(self) -> FetchTicket:
        current = self.current
        if current is None:
            raise LookupError("no platform result to fetch details for")
        return FetchTicket(
            index=self._index,
            generation=self._generation,
            platform_id=current.platform_id,
            entity_id=current.entity.entity_id,
            entity_type=current.entity.clean_type,
        )

    def _is_current(self, ticket: FetchTicket) -> bool:
        return ticket.generation == self._generation and ticket.index == self._index

    def complete_detail_fetch(self, ticket: FetchTicket, entity_data: Mapping[str, Any]) -> bool:
        """Apply fetched details; returns False when the ticket went stale."""

        if not self._is_current(ticket):
            logger.debug(
                "Discarding stale detail fetch",
                extra={
                    "ticket_index": ticket.index,
                    "ticket_generation": ticket.generation,
                    "current_index": self._index,
                    "generation": self._generation,
                },
            )
            return False
        self._results[ticket.index] = self._results[ticket.index].with_entity_data(entity_data)
        self._failures.pop(ticket.index, None)
        return True

    def fail_detail_fetch(self, ticket: FetchTicket, error: IntelmatchError) -> DetailFetchOutcome:
        """Record a failed fetch; the base record stays displayed as it was."""

        if not self._is_current(ticket):
            logger.debug("Discarding stale detail fetch failure", extra={"ticket_index": ticket.index})
            return DetailFetchOutcome(ticket, "stale")
        self._failures[ticket.index] = error
        logger.warning(
            "Detail fetch failed",
            extra={"platform_id": ticket.platform_id, "error": error.message},
        )
        return DetailFetchOutcome(ticket, "failed", error)

    def refresh_current(self, fetcher: DetailFetcher) -> DetailFetchOutcome:
        """Fetch details for the current result and apply them if still relevant."""

        ticket = self.begin_detail_fetch()
        current = self._results[ticket.index]
        try:
            entity_data = fetcher(current)
        except IntelmatchError as exc:
            return self.fail_detail_fetch(ticket, exc)
        if self.complete_detail_fetch(ticket, entity_data):
            return DetailFetchOutcome(ticket, "applied")
        return DetailFetchOutcome(ticket, "stale")


__all__ = [
    "DetailFetchOutcome",
    "DetailFetcher",
    "FetchTicket",
    "PlatformNavigator",
    "build_multi_platform_results",
    "resolve_entity",
    "sort_platform_results",
]
