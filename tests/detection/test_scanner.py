from __future__ import annotations

import pytest

from intelmatch.detection import Candidate, CharRange, scan_text


def _names(matches) -> list[str]:
    return [match.candidate.name for match in matches]


def test_defanged_hostname_does_not_match_embedded_word() -> None:
    assert scan_text("dl[.]software-update[.]org", [Candidate(name="Software")]) == ()


def test_standalone_word_matches_once() -> None:
    matches = scan_text("The Software is installed", [Candidate(name="Software")])

    assert len(matches) == 1
    assert matches[0].span == CharRange(4, 12)
    assert matches[0].matched_text == "Software"


def test_typographic_punctuation_does_not_block_matches() -> None:
    candidates = [Candidate(name="APT29"), Candidate(name="Cozy Bear")]

    matches = scan_text("The group “APT29”—also tracked as Cozy Bear…", candidates)

    assert _names(matches) == ["APT29", "Cozy Bear"]
    assert matches[0].span == CharRange(11, 16)
    assert matches[1].span == CharRange(34, 43)


def test_hyphenated_hostname_does_not_match_embedded_word() -> None:
    assert scan_text("oaev-test-linux-01", [Candidate(name="Linux")]) == ()


def test_dotted_name_matches_as_a_whole() -> None:
    matches = scan_text("I use Ransomware.Live daily", [Candidate(name="Ransomware.Live")])

    assert _names(matches) == ["Ransomware.Live"]
    assert matches[0].span == CharRange(6, 21)


def test_longer_name_claims_its_span_first() -> None:
    candidates = [Candidate(name="Cozy", entity_id="a"), Candidate(name="Cozy Bear", entity_id="b")]

    matches = scan_text("Cozy Bear struck again", candidates)

    assert _names(matches) == ["Cozy Bear"]


def test_parent_technique_does_not_match_inside_sub_technique() -> None:
    candidates = [Candidate(name="T1059"), Candidate(name="T1059.001")]

    assert _names(scan_text("Uses T1059.001 heavily", candidates)) == ["T1059.001"]

    matches = scan_text("Uses T1059.001 and plain T1059.", candidates)
    assert _names(matches) == ["T1059.001", "T1059"]
    assert matches[1].span == CharRange(25, 30)


def test_ip_candidate_skips_longer_address() -> None:
    matches = scan_text("192.168.1.100 and 192.168.1.1", [Candidate(name="192.168.1.1")])

    assert len(matches) == 1
    assert matches[0].span == CharRange(18, 29)


def test_alias_match_is_reported_under_candidate_name() -> None:
    candidate = Candidate(name="APT29", entity_id="intrusion-set--1", aliases=("Cozy Bear",))

    matches = scan_text("Analysts blamed cozy bear again", [candidate])

    assert len(matches) == 1
    record = matches[0].as_scan_record()
    assert record["name"] == "APT29"
    assert record["matchedValue"] == "cozy bear"
    assert record["found"] is True
    assert record["entityId"] == "intrusion-set--1"


def test_candidate_is_reported_at_most_once() -> None:
    candidate = Candidate(name="APT29", aliases=("Cozy Bear",))

    matches = scan_text("APT29, also called Cozy Bear, and APT29 again", [candidate])

    assert len(matches) == 1
    assert matches[0].matched_text == "Cozy Bear"


def test_first_registered_candidate_wins_identical_span() -> None:
    candidates = [
        Candidate(name="Emotet", entity_id="malware--1", entity_type="Malware"),
        Candidate(name="Emotet", entity_id="intrusion-set--2", entity_type="Intrusion-Set"),
    ]

    matches = scan_text("Emotet returned", candidates)

    assert len(matches) == 1
    assert matches[0].candidate.entity_id == "malware--1"


def test_short_terms_are_skipped_below_min_length() -> None:
    candidate = Candidate(name="C2")

    assert scan_text("C2 server", [candidate]) == ()
    assert len(scan_text("C2 server", [candidate], min_length=2)) == 1


def test_matches_are_sorted_by_position_with_context() -> None:
    candidates = [Candidate(name="APT29"), Candidate(name="APT28")]

    matches = scan_text("APT28 and APT29", candidates, context_window=4)

    assert _names(matches) == ["APT28", "APT29"]
    assert matches[0].context_snippet == "APT28 and..."
    assert matches[1].context_snippet == "...and APT29"


def test_unconfirmed_candidate_record_is_not_found() -> None:
    record = scan_text("Emotet", [Candidate(name="Emotet")])[0].as_scan_record()

    assert record["found"] is False
    assert "matchedValue" not in record
    assert (record["startIndex"], record["endIndex"]) == (0, 6)


def test_scan_rejects_non_positive_min_length() -> None:
    with pytest.raises(ValueError):
        scan_text("text", [], min_length=0)
