from __future__ import annotations

import json
from pathlib import Path

import pytest

from intelmatch.configuration import (
    load_candidates,
    load_platforms,
    load_scan_batch,
    load_structured_document,
)
from intelmatch.detection import IdentifierKind
from intelmatch.errors import InputValidationError, PlatformConfigError


def _write(path: Path, content: str) -> Path:
    path.write_text(content, encoding="utf-8")
    return path


def test_load_platforms_normalizes_entries(tmp_path: Path) -> None:
    config = load_platforms(
        _write(
            tmp_path / "platforms.yaml",
            """
platforms:
  - id: octi-prod
    name: Production OpenCTI
    type: OpenCTI
    url: https://octi.example.org/
    detail_url: "{url}/api/entities/{entity_id}"
  - id: oaev-lab
    type: openaev
""",
        )
    )

    first, second = config.platforms
    assert first.type == "opencti"
    assert first.url == "https://octi.example.org"
    assert first.detail_url == "{url}/api/entities/{entity_id}"
    assert second.name == "oaev-lab"
    assert config.get("oaev-lab") is second
    assert config.get("missing") is None
    assert config.families == ("opencti", "openaev")


@pytest.mark.parametrize(
    ("content", "fragment"),
    [
        ("other: []\n", "must define a 'platforms' list"),
        ("platforms:\n  - id: x\n    type: splunk\n", "unknown type 'splunk'"),
        ("platforms:\n  - id: x\n  - id: x\n", "declared more than once"),
        ("platforms:\n  - name: nameless\n", "missing a non-empty 'id'"),
        ("platforms:\n  - id: x\n    name: yes\n", "must be a string"),
        ("platforms: [unclosed\n", "invalid YAML"),
        ("- just\n- a list\n", "mapping at the root level"),
    ],
)
def test_load_platforms_rejects_invalid_files(tmp_path: Path, content: str, fragment: str) -> None:
    path = _write(tmp_path / "platforms.yaml", content)

    with pytest.raises(PlatformConfigError) as exc:
        load_platforms(path)

    assert fragment in exc.value.message
    assert exc.value.remediation


def test_load_platforms_requires_existing_file(tmp_path: Path) -> None:
    with pytest.raises(PlatformConfigError) as exc:
        load_platforms(tmp_path / "missing.yaml")

    assert "does not exist" in exc.value.message


def test_load_candidates_reads_aliases_and_defaults(tmp_path: Path) -> None:
    candidates = load_candidates(
        _write(
            tmp_path / "candidates.yaml",
            """
candidates:
  - name: APT29
    type: Intrusion-Set
    entity_id: intrusion-set--1
    platform_id: octi-prod
    aliases: [Cozy Bear, "  "]
  - name: 192.168.1.1
  - name: Linux Fleet
    type: AssetGroup
    platform_type: openaev
    entity_data:
      asset_group_id: ag-1
""",
        )
    )

    apt, address, fleet = candidates
    assert apt.aliases == ("Cozy Bear",)
    assert apt.platform_type == "opencti"
    assert apt.identity == "intrusion-set--1"
    assert address.kind is IdentifierKind.IP
    assert address.entity_type == "Unknown"
    assert address.value == "192.168.1.1"
    assert fleet.platform_type == "openaev"
    assert fleet.entity_data == {"asset_group_id": "ag-1"}


def test_load_candidates_rejects_bad_entries(tmp_path: Path) -> None:
    with pytest.raises(InputValidationError) as exc:
        load_candidates(_write(tmp_path / "c.yaml", "candidates:\n  - type: Malware\n"))
    assert "'name'" in exc.value.message

    with pytest.raises(InputValidationError) as exc:
        load_candidates(_write(tmp_path / "c.yaml", "candidates:\n  - name: x\n    aliases: one\n"))
    assert "must be a list" in exc.value.message

    with pytest.raises(InputValidationError):
        load_candidates(_write(tmp_path / "c.yaml", "candidates: nope\n"))

    with pytest.raises(InputValidationError) as exc:
        load_candidates(_write(tmp_path / "c.yaml", "candidates:\n  - name: x\n    entity_id: true\n"))
    assert "'entity_id'" in exc.value.message


def test_load_candidates_keeps_numeric_ids(tmp_path: Path) -> None:
    (candidate,) = load_candidates(
        _write(tmp_path / "c.yaml", "candidates:\n  - name: Emotet\n    entity_id: 42\n")
    )

    assert candidate.entity_id == "42"


def test_load_structured_document_reports_json_position(tmp_path: Path) -> None:
    path = _write(tmp_path / "results.json", '{"sdos": [}')

    with pytest.raises(InputValidationError) as exc:
        load_structured_document(path, "scan results file")

    assert "invalid JSON" in exc.value.message
    assert "line 1" in exc.value.remediation


def test_load_structured_document_requires_object_root(tmp_path: Path) -> None:
    with pytest.raises(InputValidationError):
        load_structured_document(_write(tmp_path / "results.json", "[]"), "scan results file")


def test_load_scan_batch_accepts_json_and_yaml(tmp_path: Path) -> None:
    payload = {
        "observables": [{"type": "IPv4-Addr", "value": "10.0.0.5"}],
        "platformEntities": [{"name": "Red Team", "type": "Team"}],
        "aiEntities": [{"value": "ShadowPad"}, "ignored"],
    }
    batch = load_scan_batch(_write(tmp_path / "results.json", json.dumps(payload)))

    assert len(batch.observables) == 1
    assert len(batch.platform_entities) == 1
    assert len(batch.ai_entities) == 1
    assert len(batch) == 3

    yaml_batch = load_scan_batch(_write(tmp_path / "results.yaml", "cves:\n  - name: CVE-2024-3094\n"))
    assert yaml_batch.cves[0]["name"] == "CVE-2024-3094"
