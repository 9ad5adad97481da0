"""Plain-text tables for scan and resolution results."""
from __future__ import annotations

from dataclasses import dataclass
import unicodedata
from typing import Callable, Sequence

from intelmatch.reconciliation import (
    MultiPlatformResult,
    ScanResultEntity,
    filter_entities,
    unique_types,
)
from intelmatch.reconciliation.resolver import DetailFetchOutcome

_ENTITY_WIDTH = 32
_TYPE_WIDTH = 24
_PLATFORMS_WIDTH = 24
_MATCHES_WIDTH = 7
_MATCHED_STRINGS_WIDTH = 48
_INDEX_WIDTH = 3
_PLATFORM_NAME_WIDTH = 24
_ENTITY_ID_WIDTH = 40

# (found filter, section title, placeholder)
_SCAN_SECTIONS = (
    ("found", "Found on a platform", "-- nothing matched a platform --"),
    ("not-found", "Not found", "-- every detection was found --"),
    ("ai-discovered", "AI suggestions", "-- no AI suggestions --"),
)

Column = tuple[str, int, str]


@dataclass(frozen=True)
class ReportRenderOptions:
    """Render-time switches influencing CLI layout."""

    quiet: bool = False
    wide: bool = False


@dataclass(frozen=True)
class ScanReport:
    """Aggregated entities of one scan, ready to render."""

    entities: tuple[ScanResultEntity, ...]
    render_options: ReportRenderOptions
    source_display: str | None = None

    @property
    def found_count(self) -> int:
        return sum(1 for entity in self.entities if entity.found)


@dataclass(frozen=True)
class ResolutionReport:
    """Ordered per-platform results of one entity."""

    results: tuple[MultiPlatformResult, ...]
    render_options: ReportRenderOptions
    current_index: int = 0
    fetch_outcome: DetailFetchOutcome | None = None


def render_scan_report(report: ScanReport) -> str:
    """Render scan results grouped into found, not found and AI sections."""

    wide = report.render_options.wide
    columns = _scan_columns(wide=wide)
    lines = ["Scan Results"]
    if report.source_display:
        lines.append(f"Source: {report.source_display}")

    for found_filter, title, placeholder in _SCAN_SECTIONS:
        section = filter_entities(report.entities, found_filter=found_filter)
        if found_filter == "ai-discovered" and not section:
            continue
        lines.append("")
        lines.append(f"{title} ({len(section)})")
        lines.extend(_build_table(section, columns, _scan_row, placeholder=placeholder))

    lines.append("")
    lines.append(
        f"{len(report.entities)} entities, {report.found_count} found on at least one platform."
    )
    if not wide:
        lines.append("Tip: re-run with --wide to include the matched page text.")
    return "\n".join(lines)


def render_resolution_report(report: ResolutionReport) -> str:
    """Render one line per platform, the current result marked with ``*``."""

    columns: Sequence[Column] = (
        ("#", _INDEX_WIDTH, "right"),
        ("Platform", _PLATFORM_NAME_WIDTH, "left"),
        ("Type", _TYPE_WIDTH, "left"),
        ("Entity Id", _ENTITY_ID_WIDTH, "left"),
    )
    lines = ["Platform Results"]

    def row(result: MultiPlatformResult, columns: Sequence[Column], *, wide: bool) -> str:
        index = report.results.index(result)
        marker = "*" if index == report.current_index else ""
        values = {
            "#": f"{marker}{index + 1}",
            "Platform": result.platform_name,
            "Type": result.entity.type,
            "Entity Id": result.entity.entity_id or "--",
        }
        return _format_row(values, columns)

    lines.extend(
        _build_table(
            report.results,
            columns,
            row,
            placeholder="-- entity has no platform matches --",
            wide=report.render_options.wide,
        )
    )

    outcome = report.fetch_outcome
    if outcome is not None:
        lines.append("")
        if outcome.applied:
            lines.append(f"Details refreshed from {outcome.ticket.platform_id}.")
        elif outcome.stale:
            lines.append("Details arrived after navigation moved on and were discarded.")
        else:
            reason = outcome.error.message if outcome.error else "unknown error"
            lines.append(f"Detail fetch failed: {reason}")
    return "\n".join(lines)


def _scan_columns(*, wide: bool) -> Sequence[Column]:
    columns: list[Column] = [
        ("Entity", _ENTITY_WIDTH, "left"),
        ("Type", _TYPE_WIDTH, "left"),
        ("Platforms", _PLATFORMS_WIDTH, "left"),
        ("Matched", _MATCHES_WIDTH, "right"),
    ]
    if wide:
        columns.append(("Matched Text", _MATCHED_STRINGS_WIDTH, "left"))
    return columns


def _scan_row(entity: ScanResultEntity, columns: Sequence[Column], *, wide: bool) -> str:
    values = {
        "Entity": entity.name,
        "Type": " / ".join(unique_types(entity)),
        "Platforms": ", ".join(entity.platform_ids) or "--",
        "Matched": str(len(entity.matched_strings)),
        "Matched Text": "; ".join(entity.matched_strings) or "--",
    }
    return _format_row(values, columns)


def _build_table(
    items: Sequence,
    columns: Sequence[Column],
    format_row: Callable[..., str],
    *,
    placeholder: str,
    wide: bool = False,
) -> list[str]:
    header = " | ".join(_pad_text(title.upper(), width) for title, width, _ in columns)
    separator = "-+-".join("-" * width for _, width, _ in columns)
    rows = [format_row(item, columns, wide=wide) for item in items]
    if not rows:
        rows = [_pad_text(placeholder, len(separator))]
    return [header, separator, *rows]


def _format_row(values: dict[str, str], columns: Sequence[Column]) -> str:
    return " | ".join(
        _pad_text(values.get(title, ""), width, align=alignment)
        for title, width, alignment in columns
    )


def _pad_text(value: str, width: int, *, align: str = "left") -> str:
    text = _truncate(_normalize_text(value), width)
    if align == "right":
        return text.rjust(width)
    return text.ljust(width)


def _truncate(value: str, width: int) -> str:
    if len(value) <= width:
        return value
    if width <= 3:
        return value[:width]
    return value[: width - 3] + "..."


def _normalize_text(value: str) -> str:
    collapsed = " ".join(str(value).split())
    normalized = unicodedata.normalize("NFKD", collapsed)
    return normalized.encode("ascii", "ignore").decode("ascii")


__all__ = [
    "ReportRenderOptions",
    "ResolutionReport",
    "ScanReport",
    "render_resolution_report",
    "render_scan_report",
]
