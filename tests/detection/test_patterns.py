from __future__ import annotations

from intelmatch.detection import create_matching_regex, escape_regex


def test_escape_regex_escapes_metacharacters() -> None:
    assert escape_regex("a.b*c?d+e") == r"a\.b\*c\?d\+e"
    assert escape_regex("(x)[y]{z}|^$\\") == r"\(x\)\[y\]\{z\}\|\^\$\\"


def test_matching_regex_matches_only_literal_occurrences() -> None:
    text = "x A.B*C?D+E y a.b*c?d+e then aXb*c?d+e and abbbcde"

    pattern = create_matching_regex("a.b*c?d+e")

    assert [found.group(0) for found in pattern.finditer(text)] == ["A.B*C?D+E", "a.b*c?d+e"]


def test_ip_pattern_is_not_a_prefix_of_a_longer_address() -> None:
    pattern = create_matching_regex("192.168.1.1")

    assert pattern.search("host 192.168.1.100 is down") is None
    assert pattern.search("host 10.192.168.1.1 is down") is None
    assert pattern.search("host 192.168.1.1, up") is not None


def test_mac_pattern_is_anchored() -> None:
    pattern = create_matching_regex("00:1a:2b:3c:4d:5e")

    assert pattern.search("mac 00:1A:2B:3C:4D:5E seen") is not None
    assert pattern.search("mac 00:1a:2b:3c:4d:5e7 seen") is None


def test_generic_pattern_is_case_insensitive_and_word_anchored() -> None:
    pattern = create_matching_regex("Emotet")

    assert pattern.search("the emotet loader") is not None
    assert pattern.search("emotets") is None


def test_generic_pattern_handles_symbol_edges() -> None:
    pattern = create_matching_regex("C++")

    assert pattern.search("written in C++ and Go") is not None


def test_compiled_patterns_are_cached() -> None:
    assert create_matching_regex("APT29") is create_matching_regex("APT29")
