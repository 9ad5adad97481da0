"""Execution orchestrator for Intelmatch CLI commands."""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Iterable, Mapping

import httpx

from intelmatch.adapters import make_detail_fetcher
from intelmatch.configuration import (
    load_candidates,
    load_platforms,
    load_scan_batch,
    load_structured_document,
)
from intelmatch.detection import (
    Candidate,
    DetectedMatch,
    DetectedObservable,
    detect_observables,
    scan_text,
)
from intelmatch.detection.scanner import DEFAULT_MIN_LENGTH, SIMULATION_MIN_LENGTH
from intelmatch.errors import (
    DetailFetchError,
    InputValidationError,
    IntelmatchError,
    PdfExtractionError,
    PlatformConfigError,
    TimeoutExceededError,
)
from intelmatch.exit_codes import ExitCode
from intelmatch.ingestion import HTML_SUFFIXES, extract_html_text
from intelmatch.ingestion import extract_text as extract_pdf_text
from intelmatch.reconciliation import (
    PlatformInfo,
    PlatformNavigator,
    ScanBatch,
    aggregate_scan_results,
)
from intelmatch.reconciliation.models import KNOWLEDGE_BASE_TYPE
from intelmatch.reporting import ReportRenderOptions, ResolutionReport, ScanReport
from intelmatch.utils import LoadedDocument, load_text_document, mask_value

logger = logging.getLogger("intelmatch.orchestration.runner")

# Observable types confirmed by name lookups rather than value lookups.
_VULNERABILITY_TYPE = "Vulnerability"
_NAMED_OBSERVABLE_TYPES = ("Attack-Pattern",)


@dataclass(frozen=True)
class ExecutionOutcome:
    """Result of invoking one CLI workflow."""

    exit_code: ExitCode
    status: str
    message: str | None = None
    remediation: str | None = None
    report: ScanReport | ResolutionReport | None = None


_ERROR_MAPPINGS: tuple[
    tuple[type[IntelmatchError], ExitCode, str, str | None],
    ...,
] = (
    (
        InputValidationError,
        ExitCode.INVALID_INPUT,
        "Input validation failed.",
        "Double-check the input file paths, their structure and file permissions.",
    ),
    (
        PdfExtractionError,
        ExitCode.PARSE_ERROR,
        "Failed to extract text from the supplied document.",
        "Ensure the page text is a readable PDF, HTML page or UTF-8 text file.",
    ),
    (
        PlatformConfigError,
        ExitCode.CONFIG_ERROR,
        "The platform configuration is invalid.",
        "Fix the platforms file; every entry needs a unique id and a known type.",
    ),
    (
        DetailFetchError,
        ExitCode.FETCH_ERROR,
        "Fetching entity details from the platform failed.",
        "Check the platform URL and the INTELMATCH_TOKEN_<PLATFORM_ID> variable.",
    ),
    (
        TimeoutExceededError,
        ExitCode.TIMEOUT,
        "The platform round trip timed out.",
        "Retry with a stable network connection or increase the configured timeout.",
    ),
)


def run_scan(
    text_path: Path,
    candidates_path: Path,
    *,
    platforms_path: Path | None = None,
    min_length: int = DEFAULT_MIN_LENGTH,
    quiet: bool = False,
    wide: bool = False,
) -> ExecutionOutcome:
    """Scan a page for observables and known candidates, then aggregate the hits."""

    try:
        if min_length < 1:
            raise InputValidationError(
                message=f"Minimum match length must be positive, got {min_length}.",
                remediation="Pass --min-length 1 or higher.",
            )
        document = _load_document(text_path, description="page text")
        candidates = load_candidates(candidates_path)
        platforms = load_platforms(platforms_path).platforms if platforms_path else ()
        batch = _scan_document(document, candidates, platforms, min_length=min_length)
        entities = aggregate_scan_results(batch)
    except IntelmatchError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover
        return _unexpected(error)

    report = ScanReport(
        entities=entities,
        render_options=ReportRenderOptions(quiet=quiet, wide=wide),
        source_display=document.display_name,
    )
    summary = (
        f"Scanned {document.display_name} ({document.display_encoding}, "
        f"{len(document.text)} characters) against {len(candidates)} candidates."
    )
    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=summary,
        report=report,
    )


def run_aggregate(
    results_path: Path,
    *,
    quiet: bool = False,
    wide: bool = False,
) -> ExecutionOutcome:
    """Aggregate a stored scan results batch."""

    try:
        batch = load_scan_batch(results_path)
        entities = aggregate_scan_results(batch)
    except IntelmatchError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover
        return _unexpected(error)

    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=f"Aggregated {len(batch)} detection records into {len(entities)} entities.",
        report=ScanReport(
            entities=entities,
            render_options=ReportRenderOptions(quiet=quiet, wide=wide),
            source_display=str(results_path),
        ),
    )


def run_resolve(
    payload_path: Path,
    platforms_path: Path,
    *,
    fetch: bool = False,
    timeout_seconds: float = 10.0,
    transport: httpx.BaseTransport | None = None,
    quiet: bool = False,
    wide: bool = False,
) -> ExecutionOutcome:
    """Resolve one entity across platforms and optionally refresh the first result."""

    try:
        payload = _entity_payload(load_structured_document(payload_path, "entity payload file"))
        platforms = load_platforms(platforms_path).platforms
        navigator = PlatformNavigator.for_entity(payload, platforms)
    except IntelmatchError as error:
        return handle_domain_error(error)
    except Exception as error:  # pragma: no cover
        return _unexpected(error)

    logger.info(
        "Resolved entity across platforms",
        extra={"result_count": len(navigator.results), "platform_count": len(platforms)},
    )

    fetch_outcome = None
    if fetch and navigator.current is not None:
        fetcher = make_detail_fetcher(platforms, timeout_seconds=timeout_seconds, transport=transport)
        fetch_outcome = navigator.refresh_current(fetcher)

    report = ResolutionReport(
        results=navigator.results,
        render_options=ReportRenderOptions(quiet=quiet, wide=wide),
        current_index=navigator.current_index,
        fetch_outcome=fetch_outcome,
    )

    if fetch_outcome is not None and fetch_outcome.error is not None:
        failure = handle_domain_error(fetch_outcome.error)
        return replace(failure, status="partial", report=report)

    return ExecutionOutcome(
        exit_code=ExitCode.SUCCESS,
        status="success",
        message=f"Entity is known on {len(navigator.results)} platform(s).",
        report=report,
    )


def _load_document(path: Path, *, description: str) -> LoadedDocument:
    """Load page text from a PDF report, a saved web page or a plain text file."""

    suffix = path.suffix.lower()
    if suffix == ".pdf":
        return extract_pdf_text(path, description=description)
    if suffix in HTML_SUFFIXES:
        return extract_html_text(path, description=description)
    return load_text_document(path, description)


def _entity_payload(document: Mapping[str, Any]) -> Mapping[str, Any]:
    nested = document.get("entity")
    if isinstance(nested, Mapping):
        return nested
    return document


def _scan_document(
    document: LoadedDocument,
    candidates: Iterable[Candidate],
    platforms: Iterable[PlatformInfo],
    *,
    min_length: int,
) -> ScanBatch:
    platform_types = {platform.id: platform.type for platform in platforms}
    resolved = [_with_platform_type(candidate, platform_types) for candidate in candidates]

    knowledge_base = [c for c in resolved if c.platform_type == KNOWLEDGE_BASE_TYPE]
    auxiliary = [c for c in resolved if c.platform_type != KNOWLEDGE_BASE_TYPE]

    observables = detect_observables(document.text)
    matches = scan_text(document.text, knowledge_base, min_length=min_length)
    auxiliary_matches = scan_text(
        document.text,
        auxiliary,
        min_length=max(min_length, SIMULATION_MIN_LENGTH),
    )

    logger.info(
        "Scanned page text",
        extra={
            "document": document.display_name,
            "observable_count": len(observables),
            "candidate_match_count": len(matches) + len(auxiliary_matches),
        },
    )
    for match in (*matches, *auxiliary_matches):
        logger.debug(
            "Accepted candidate match",
            extra={
                "matched": mask_value(match.matched_text),
                "start": match.span.start,
                "end": match.span.end,
            },
        )

    return _build_batch(observables, matches, auxiliary_matches)


def _with_platform_type(candidate: Candidate, platform_types: Mapping[str, str]) -> Candidate:
    if not candidate.platform_id or not platform_types:
        return candidate
    configured = platform_types.get(candidate.platform_id)
    if configured is None:
        logger.warning(
            "Candidate references an unconfigured platform",
            extra={"platform_id": candidate.platform_id},
        )
        return candidate
    if configured == candidate.platform_type:
        return candidate
    return replace(candidate, platform_type=configured)


def _build_batch(
    observables: Iterable[DetectedObservable],
    matches: Iterable[DetectedMatch],
    auxiliary_matches: Iterable[DetectedMatch],
) -> ScanBatch:
    observable_records: list[dict[str, Any]] = []
    sdo_records: list[dict[str, Any]] = []
    cve_records: list[dict[str, Any]] = []

    for observable in observables:
        record = observable.as_scan_record()
        if observable.type == _VULNERABILITY_TYPE:
            record["name"] = record.pop("value")
            record["matchedValue"] = observable.value
            cve_records.append(record)
        elif observable.type in _NAMED_OBSERVABLE_TYPES:
            record["name"] = record.pop("value")
            sdo_records.append(record)
        else:
            observable_records.append(record)

    sdo_records.extend(match.as_scan_record() for match in matches)
    return ScanBatch(
        observables=tuple(observable_records),
        sdos=tuple(sdo_records),
        cves=tuple(cve_records),
        platform_entities=tuple(match.as_scan_record() for match in auxiliary_matches),
    )


def _unexpected(error: Exception) -> ExecutionOutcome:
    logger.exception("Unexpected error occurred during orchestration.")
    return ExecutionOutcome(
        exit_code=ExitCode.UNEXPECTED_ERROR,
        status="failure",
        message=str(error) or "An unexpected error occurred.",
        remediation="Re-run without --quiet and inspect the logs for details before retrying.",
    )


def handle_domain_error(error: IntelmatchError) -> ExecutionOutcome:
    """Translate a domain error into an execution outcome and log remediation hints."""

    exit_code, default_message, default_remediation = _map_error(error)
    message = error.message or default_message
    remediation = error.remediation or default_remediation

    logger.error(message, extra={"exit_code": int(exit_code)})
    if remediation:
        logger.error("Remediation: %s", remediation)

    return ExecutionOutcome(
        exit_code=exit_code,
        status="failure",
        message=message,
        remediation=remediation,
    )


def _map_error(error: IntelmatchError) -> tuple[ExitCode, str, str | None]:
    for error_type, exit_code, message, remediation in _ERROR_MAPPINGS:
        if isinstance(error, error_type):
            return exit_code, message, remediation

    return (
        ExitCode.UNEXPECTED_ERROR,
        "An unexpected error occurred.",
        "Enable debug logging and retry. If the issue persists, open a bug ticket with the logs.",
    )


__all__ = [
    "ExecutionOutcome",
    "handle_domain_error",
    "run_aggregate",
    "run_resolve",
    "run_scan",
]
