"""Loaders for platform, candidate and stored scan result files."""
from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from intelmatch.detection.models import Candidate
from intelmatch.errors import InputValidationError, IntelmatchError, PlatformConfigError
from intelmatch.reconciliation.models import KNOWLEDGE_BASE_TYPE, PlatformInfo, ScanBatch
from intelmatch.reconciliation.platforms import PLATFORM_FAMILIES


@dataclass(frozen=True)
class PlatformsConfig:
    """Configured platform instances in file order."""

    platforms: tuple[PlatformInfo, ...]
    source: Path

    def get(self, platform_id: str) -> PlatformInfo | None:
        for platform in self.platforms:
            if platform.id == platform_id:
                return platform
        return None

    @property
    def families(self) -> tuple[str, ...]:
        return tuple(dict.fromkeys(platform.type for platform in self.platforms))


def load_platforms(path: Path) -> PlatformsConfig:
    """Load ``platforms: [{id, name, type, url, detail_url}]`` from a YAML file."""

    resolved = _resolve_path(path, "Platforms file", PlatformConfigError)
    payload = _load_yaml(resolved, "Platforms file", PlatformConfigError)
    entries = payload.get("platforms")
    display = str(resolved)

    if not isinstance(entries, Sequence) or isinstance(entries, str | bytes):
        raise PlatformConfigError(
            message=f"Platforms file {display} must define a 'platforms' list.",
            remediation="Add a 'platforms' key holding one mapping per platform instance.",
        )

    platforms: list[PlatformInfo] = []
    seen: set[str] = set()
    for position, entry in enumerate(entries, start=1):
        platform = _parse_platform(entry, position, display)
        if platform.id in seen:
            raise PlatformConfigError(
                message=f"Platform id '{platform.id}' is declared more than once in {display}.",
                remediation="Give every platform instance a unique id.",
            )
        seen.add(platform.id)
        platforms.append(platform)

    return PlatformsConfig(platforms=tuple(platforms), source=resolved)


def _parse_platform(entry: object, position: int, display: str) -> PlatformInfo:
    if not isinstance(entry, Mapping):
        raise PlatformConfigError(
            message=f"Platform #{position} in {display} must be a mapping.",
            remediation="Describe each platform with id, name, type and url keys.",
        )

    platform_id = _required_string(entry, "id", f"Platform #{position} in {display}", PlatformConfigError)
    name = _optional_string(entry, "name", display, PlatformConfigError) or platform_id
    platform_type = (
        _optional_string(entry, "type", display, PlatformConfigError) or KNOWLEDGE_BASE_TYPE
    ).lower()
    if platform_type not in PLATFORM_FAMILIES:
        raise PlatformConfigError(
            message=f"Platform '{platform_id}' in {display} has unknown type '{platform_type}'.",
            remediation=f"Use one of: {', '.join(PLATFORM_FAMILIES)}.",
        )

    return PlatformInfo(
        id=platform_id,
        name=name,
        type=platform_type,
        url=(_optional_string(entry, "url", display, PlatformConfigError) or "").rstrip("/"),
        detail_url=_optional_string(entry, "detail_url", display, PlatformConfigError),
    )


def load_candidates(path: Path) -> tuple[Candidate, ...]:
    """Load known entity names to scan for from a YAML file."""

    resolved = _resolve_path(path, "Candidates file", InputValidationError)
    payload = _load_yaml(resolved, "Candidates file", InputValidationError)
    entries = payload.get("candidates")
    display = str(resolved)

    if not isinstance(entries, Sequence) or isinstance(entries, str | bytes):
        raise InputValidationError(
            message=f"Candidates file {display} must define a 'candidates' list.",
            remediation="Add a 'candidates' key holding one mapping per known entity.",
        )

    candidates: list[Candidate] = []
    for position, entry in enumerate(entries, start=1):
        if not isinstance(entry, Mapping):
            raise InputValidationError(
                message=f"Candidate #{position} in {display} must be a mapping.",
                remediation="Describe each candidate with at least a name.",
            )
        context = f"Candidate #{position} in {display}"
        aliases = entry.get("aliases") or ()
        if not isinstance(aliases, Sequence) or isinstance(aliases, str | bytes):
            raise InputValidationError(
                message=f"Aliases of {context.lower()} must be a list.",
                remediation="Use a YAML list for aliases, e.g. ['APT29', 'Cozy Bear'].",
            )
        entity_data = entry.get("entity_data") or {}
        candidates.append(
            Candidate(
                name=_required_string(entry, "name", context, InputValidationError),
                value=_optional_string(entry, "value", display, InputValidationError),
                entity_id=_optional_string(entry, "entity_id", display, InputValidationError),
                entity_type=_optional_string(entry, "type", display, InputValidationError) or "Unknown",
                platform_id=_optional_string(entry, "platform_id", display, InputValidationError),
                platform_type=(
                    _optional_string(entry, "platform_type", display, InputValidationError)
                    or KNOWLEDGE_BASE_TYPE
                ),
                aliases=tuple(str(alias) for alias in aliases if str(alias).strip()),
                entity_data=dict(entity_data) if isinstance(entity_data, Mapping) else {},
            )
        )
    return tuple(candidates)


def load_structured_document(path: Path, description: str) -> dict[str, Any]:
    """Read a JSON (``.json``) or YAML mapping from *path*."""

    resolved = _resolve_path(path, description.capitalize(), InputValidationError)
    if resolved.suffix.lower() != ".json":
        return _load_yaml(resolved, description.capitalize(), InputValidationError)

    raw_text = _read_text(resolved, description.capitalize(), InputValidationError)
    try:
        loaded = json.loads(raw_text)
    except json.JSONDecodeError as exc:
        raise InputValidationError(
            message=f"{description.capitalize()} {resolved} contains invalid JSON.",
            remediation=f"Fix the JSON syntax near line {exc.lineno}, column {exc.colno}.",
        ) from exc
    if not isinstance(loaded, dict):
        raise InputValidationError(
            message=f"{description.capitalize()} {resolved} must contain an object at the root.",
            remediation="Wrap the records in an object with observables/sdos/cves keys.",
        )
    return loaded


def load_scan_batch(path: Path) -> ScanBatch:
    """Load a stored scan results batch (JSON or YAML)."""

    return ScanBatch.from_mapping(load_structured_document(path, "scan results file"))


def _resolve_path(path: Path, label: str, error_type: type[IntelmatchError]) -> Path:
    candidate = path.expanduser()
    try:
        resolved = candidate.resolve()
    except OSError:
        resolved = candidate

    if not resolved.exists() or not resolved.is_file():
        raise error_type(
            message=f"{label} {resolved} does not exist or is not a file.",
            remediation="Verify the path and try again.",
        )
    return resolved


def _read_text(path: Path, label: str, error_type: type[IntelmatchError]) -> str:
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise error_type(
            message=f"Unable to read {label.lower()} {path}.",
            remediation="Check file permissions and make sure the file is UTF-8 encoded.",
        ) from exc


def _load_yaml(path: Path, label: str, error_type: type[IntelmatchError]) -> dict:
    raw_text = _read_text(path, label, error_type)
    try:
        loaded = yaml.safe_load(raw_text) or {}
    except yaml.YAMLError as exc:
        raise error_type(
            message=f"{label} {path} contains invalid YAML.",
            remediation="Ensure the file follows the documented schema.",
        ) from exc

    if not isinstance(loaded, dict):
        raise error_type(
            message=f"{label} {path} must define a mapping at the root level.",
            remediation="Start the file with a top-level key such as 'platforms' or 'candidates'.",
        )
    return loaded


def _required_string(
    entry: Mapping[str, Any],
    key: str,
    context: str,
    error_type: type[IntelmatchError],
) -> str:
    value = entry.get(key)
    if not isinstance(value, str) or not value.strip():
        raise error_type(
            message=f"{context} is missing a non-empty '{key}'.",
            remediation=f"Provide '{key}' as a plain text string.",
        )
    return value.strip()


def _optional_string(
    entry: Mapping[str, Any],
    key: str,
    display: str,
    error_type: type[IntelmatchError],
) -> str | None:
    value = entry.get(key)
    if value is None:
        return None
    # bool is an int subclass; YAML reads bare yes/no/true as booleans.
    if isinstance(value, bool) or not isinstance(value, str | int):
        raise error_type(
            message=f"Field '{key}' in {display} must be a string.",
            remediation="Quote the value so YAML reads it as text.",
        )
    trimmed = str(value).strip()
    return trimmed or None


__all__ = [
    "PlatformsConfig",
    "load_candidates",
    "load_platforms",
    "load_scan_batch",
    "load_structured_document",
]
