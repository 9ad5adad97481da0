from __future__ import annotations

import pytest

from intelmatch.errors import InputValidationError
from intelmatch.reconciliation import (
    ScanBatch,
    ScanResultEntity,
    aggregate_scan_results,
    filter_entities,
    is_found_in_knowledge_base,
    is_selectable_for_knowledge_base,
    unique_types,
)
from intelmatch.reconciliation.aggregation import simulation_entity_id


def _sdo(**overrides: object) -> dict:
    record = {
        "type": "Malware",
        "name": "Emotet",
        "found": True,
        "entityId": "malware--1",
        "platformId": "octi-prod",
        "platformType": "opencti",
    }
    record.update(overrides)
    return record


def test_duplicate_confirmed_record_yields_single_platform_match() -> None:
    record = _sdo()

    entities = aggregate_scan_results(ScanBatch(sdos=(record, dict(record))))

    assert len(entities) == 1
    assert len(entities[0].platform_matches) == 1
    assert entities[0].platform_matches[0].identity == ("octi-prod", "opencti", "Malware", "malware--1")


def test_same_name_with_two_types_keeps_both_matches() -> None:
    batch = ScanBatch(
        sdos=(
            _sdo(),
            _sdo(type="Intrusion-Set", entityId="intrusion-set--2"),
        )
    )

    (entity,) = aggregate_scan_results(batch)

    assert [match.type for match in entity.platform_matches] == ["Malware", "Intrusion-Set"]
    assert entity.type == "Malware"
    assert entity.found is True


def test_found_flag_is_sticky_and_matched_strings_dedupe_case_insensitively() -> None:
    batch = ScanBatch(
        observables=(
            {"type": "Domain-Name", "value": "evil.com", "found": False},
            {
                "type": "Domain-Name",
                "value": "EVIL.com",
                "found": True,
                "entityId": "domain--1",
                "platformId": "octi-prod",
            },
            {"type": "Domain-Name", "value": "evil.com", "found": False},
        )
    )

    (entity,) = aggregate_scan_results(batch)

    assert entity.found is True
    assert entity.name == "evil.com"
    assert entity.matched_strings == ("evil.com",)
    assert entity.id == "obs-evil.com"


def test_unconfirmed_records_produce_no_platform_match() -> None:
    (entity,) = aggregate_scan_results(
        ScanBatch(observables=({"type": "IPv4-Addr", "value": "10.0.0.5", "matchedValue": "10[.]0[.]0[.]5"},))
    )

    assert entity.found is False
    assert entity.platform_matches == ()
    assert entity.matched_strings == ("10[.]0[.]0[.]5",)


def test_grouping_uses_normalized_canonical_name_in_first_seen_order() -> None:
    batch = ScanBatch(
        sdos=(
            _sdo(name="Cozy  Bear ", type="Intrusion-Set", entityId="is--1", matchedValue="cozy bear"),
            _sdo(name="Emotet"),
        ),
        cves=({"name": "CVE-2024-3094", "found": False},),
        platform_entities=(
            {"name": "cozy bear", "type": "Organization", "entityData": {"organization_id": "org-1"}, "platformId": "oaev-lab"},
        ),
    )

    entities = aggregate_scan_results(batch)

    assert [entity.name for entity in entities] == ["Cozy  Bear ", "Emotet", "CVE-2024-3094"]
    cozy = entities[0]
    assert [(match.platform_type, match.type) for match in cozy.platform_matches] == [
        ("opencti", "Intrusion-Set"),
        ("openaev", "oaev-Organization"),
    ]
    assert cozy.platform_matches[1].entity_id == "org-1"
    assert cozy.matched_strings == ("cozy bear",)


def test_vulnerability_records_are_typed_and_get_synthetic_ids() -> None:
    (entity,) = aggregate_scan_results(ScanBatch(cves=({"name": "CVE-2024-3094", "type": "x"},)))

    assert entity.type == "Vulnerability"
    assert entity.id == "cve-CVE-2024-3094"


def test_simulation_entities_are_prefixed_and_found_by_default() -> None:
    batch = ScanBatch(
        platform_entities=(
            {
                "name": "web-server-01",
                "type": "Asset",
                "entityData": {"endpoint_id": "ep-1"},
                "platformId": "oaev-lab",
            },
        )
    )

    (entity,) = aggregate_scan_results(batch)

    assert entity.type == "oaev-Asset"
    assert entity.id == "ep-1"
    assert entity.found is True
    assert entity.platform_matches[0].platform_type == "openaev"
    assert is_selectable_for_knowledge_base(entity) is False
    assert is_found_in_knowledge_base(entity) is False


def test_ai_suggestions_are_appended_unmerged() -> None:
    batch = ScanBatch(
        sdos=(_sdo(name="ShadowPad"),),
        ai_entities=(
            {"value": "ShadowPad", "type": "Malware", "reason": "Named as backdoor", "confidence": "high"},
        ),
    )

    entities = aggregate_scan_results(batch)

    assert len(entities) == 2
    suggestion = entities[-1]
    assert suggestion.discovered_by_ai is True
    assert suggestion.found is False
    assert suggestion.id == "ai-0"
    assert suggestion.ai_reason == "Named as backdoor"
    assert suggestion.ai_confidence == "high"


def test_existing_entities_seed_the_groups() -> None:
    existing = (
        ScanResultEntity(
            id="entity-1",
            type="Malware",
            name="Emotet",
            value="Emotet",
            found=False,
            matched_strings=("emotet",),
        ),
    )

    (entity,) = aggregate_scan_results(ScanBatch(sdos=(_sdo(),)), existing)

    assert entity.id == "entity-1"
    assert entity.found is True
    assert entity.matched_strings == ("emotet",)
    assert len(entity.platform_matches) == 1


def test_mapping_payload_accepts_platform_specific_keys() -> None:
    payload = {
        "openctiEntities": [_sdo()],
        "openaevEntities": [{"name": "Red Team", "type": "Team", "team_id": "team-9"}],
    }

    entities = aggregate_scan_results(payload)

    assert [entity.id for entity in entities] == ["malware--1", "team-9"]


def test_record_without_name_does_not_hide_its_neighbours() -> None:
    batch = ScanBatch(
        sdos=(
            _sdo(name="APT29", type="Intrusion-Set", entityId="intrusion-set--1"),
            {"type": "Malware", "found": True, "entityId": "malware--9", "platformId": "octi-prod"},
            _sdo(),
        ),
        cves=({"found": False},),
    )

    entities = aggregate_scan_results(batch)

    assert [entity.name for entity in entities] == ["APT29", "sdo-Malware-1", "Emotet", "cve-Vulnerability-0"]
    assert entities[1].found is True
    assert entities[1].platform_matches[0].entity_id == "malware--9"
    assert entities[3].found is False


def test_found_accepts_only_real_booleans() -> None:
    batch = ScanBatch(
        sdos=(_sdo(found="false"),),
        platform_entities=({"name": "Red Team", "type": "Team", "team_id": "team-9", "found": "no"},),
    )

    sdo, team = aggregate_scan_results(batch)

    assert sdo.found is False
    assert sdo.platform_matches == ()
    assert team.found is True


def test_filter_entities_by_found_type_and_search() -> None:
    batch = ScanBatch(
        observables=({"type": "IPv4-Addr", "value": "10.0.0.5"},),
        sdos=(_sdo(),),
        ai_entities=({"value": "ShadowPad", "type": "Malware"},),
    )
    entities = aggregate_scan_results(batch)

    assert [entity.name for entity in filter_entities(entities, "found")] == ["Emotet"]
    assert [entity.name for entity in filter_entities(entities, "not-found")] == ["10.0.0.5"]
    assert [entity.name for entity in filter_entities(entities, "ai-discovered")] == ["ShadowPad"]
    assert [entity.name for entity in filter_entities(entities, type_filter="Malware")] == [
        "Emotet",
        "ShadowPad",
    ]
    assert [entity.name for entity in filter_entities(entities, search_query="ipv4 addr")] == [
        "10.0.0.5"
    ]

    with pytest.raises(InputValidationError):
        filter_entities(entities, "maybe")


def test_knowledge_base_helpers() -> None:
    (entity,) = aggregate_scan_results(ScanBatch(sdos=(_sdo(),)))

    assert is_found_in_knowledge_base(entity) is True
    assert is_selectable_for_knowledge_base(entity) is True


def test_unique_types_collapses_equivalent_types() -> None:
    entity = ScanResultEntity.from_mapping(
        {
            "name": "Command and Scripting Interpreter",
            "type": "Attack-Pattern",
            "found": True,
            "platformMatches": [
                {"platformId": "octi-prod", "type": "Attack-Pattern"},
                {"platformId": "oaev-lab", "platformType": "openaev", "type": "oaev-AttackPattern"},
            ],
        }
    )

    assert unique_types(entity) == ("Attack Pattern",)


def test_simulation_entity_id_uses_type_specific_fields() -> None:
    assert simulation_entity_id({"user_id": "u-1", "id": "x"}, "Player") == "u-1"
    assert simulation_entity_id({"_id": "raw-1"}, "Unlisted") == "raw-1"
    assert simulation_entity_id({}, "Asset") == ""
