from __future__ import annotations

from intelmatch.errors import DetailFetchError
from intelmatch.reconciliation import (
    PlatformInfo,
    PlatformNavigator,
    ScanBatch,
    aggregate_scan_results,
    resolve_entity,
)
from intelmatch.reporting import (
    ReportRenderOptions,
    ResolutionReport,
    ScanReport,
    render_resolution_report,
    render_scan_report,
)

PLATFORMS = (
    PlatformInfo(id="octi-prod", name="Production OpenCTI", type="opencti"),
    PlatformInfo(id="oaev-lab", name="Lab OpenAEV", type="openaev"),
)


def _entities():
    batch = ScanBatch(
        observables=({"type": "IPv4-Addr", "value": "10.0.0.5", "matchedValue": "10[.]0[.]0[.]5"},),
        sdos=(
            {
                "type": "Malware",
                "name": "Emotet",
                "found": True,
                "entityId": "malware--1",
                "platformId": "octi-prod",
                "matchedValue": "emotet",
            },
        ),
        ai_entities=({"value": "ShadowPad", "type": "Malware"},),
    )
    return aggregate_scan_results(batch)


def test_render_scan_report_default_layout() -> None:
    """Default layout splits found, not found and AI rows."""

    output = render_scan_report(
        ScanReport(
            entities=_entities(),
            render_options=ReportRenderOptions(),
            source_display="report.txt",
        )
    )

    assert output.startswith("Scan Results")
    assert "Source: report.txt" in output
    assert "Found on a platform (1)" in output
    assert "Not found (1)" in output
    assert "AI suggestions (1)" in output
    header_line = next(line for line in output.splitlines() if "ENTITY" in line)
    assert "PLATFORMS" in header_line
    assert "MATCHED TEXT" not in header_line
    assert "3 entities, 1 found on at least one platform." in output
    assert "--wide" in output


def test_render_scan_report_wide_layout_lists_matched_text() -> None:
    output = render_scan_report(
        ScanReport(entities=_entities(), render_options=ReportRenderOptions(wide=True))
    )

    assert "MATCHED TEXT" in output
    assert "10[.]0[.]0[.]5" in output
    assert "octi-prod" in output
    assert "Tip:" not in output


def test_render_scan_report_omits_empty_ai_section_and_uses_placeholders() -> None:
    output = render_scan_report(ScanReport(entities=(), render_options=ReportRenderOptions()))

    assert "AI suggestions" not in output
    assert "-- nothing matched a platform --" in output
    assert "0 entities, 0 found" in output


def test_render_resolution_report_marks_current_row_and_outcome() -> None:
    payload = {
        "name": "PowerShell",
        "type": "Attack-Pattern",
        "platformMatches": [
            {"platformId": "oaev-lab", "platformType": "openaev", "entityId": "ap-lab", "type": "AttackPattern"},
            {"platformId": "octi-prod", "platformType": "opencti", "entityId": "ap-1", "type": "Attack-Pattern"},
        ],
    }
    navigator = PlatformNavigator.for_entity(payload, PLATFORMS)

    def failing(result):
        raise DetailFetchError(message="Platform 'octi-prod' responded with status 500.")

    outcome = navigator.refresh_current(failing)
    output = render_resolution_report(
        ResolutionReport(
            results=navigator.results,
            render_options=ReportRenderOptions(),
            fetch_outcome=outcome,
        )
    )

    lines = output.splitlines()
    assert lines[0] == "Platform Results"
    first_row = lines[3]
    assert first_row.lstrip().startswith("*1")
    assert "Production OpenCTI" in first_row
    assert "Lab OpenAEV" in lines[4]
    assert "oaev-AttackPattern" in lines[4]
    assert "Detail fetch failed: Platform 'octi-prod' responded with status 500." in output


def test_render_resolution_report_without_matches() -> None:
    output = render_resolution_report(
        ResolutionReport(
            results=resolve_entity({"name": "x"}, PLATFORMS),
            render_options=ReportRenderOptions(),
        )
    )

    assert "-- entity has no platform matches --" in output
