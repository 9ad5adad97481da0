from __future__ import annotations

import pytest

from intelmatch.detection import (
    detect_observable_type,
    detect_observables,
    is_defanged,
    refang_indicator,
)
from intelmatch.detection.observables import normalize_cve

MD5 = "d41d8cd98f00b204e9800998ecf8427e"
SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def _types(observables) -> list[str]:
    return [observable.type for observable in observables]


def test_defanged_url_is_refanged() -> None:
    observables = detect_observables("Download from hxxp://evil[.]com/payload now")

    assert _types(observables) == ["Url"]
    url = observables[0]
    assert url.value == "hxxp://evil[.]com/payload"
    assert url.refanged_value == "http://evil.com/payload"
    assert url.is_defanged is True


def test_url_claims_the_address_it_contains() -> None:
    observables = detect_observables("beacon to http://10.0.0.5/x today")

    assert _types(observables) == ["Url"]


def test_clear_spelling_wins_over_defanged_duplicate() -> None:
    text = "Seen 10[.]0[.]0[.]5 and later 10.0.0.5"

    observables = detect_observables(text)

    assert _types(observables) == ["IPv4-Addr"]
    assert observables[0].refanged_value == "10.0.0.5"
    assert observables[0].is_defanged is False
    assert observables[0].span.start == text.rindex("10.0.0.5")


def test_ipv4_rejects_placeholders_and_version_strings() -> None:
    assert detect_observables("bind 0.0.0.0 or 255.255.255.255") == ()
    assert detect_observables("release 1.2.3.4.5 shipped") == ()


def test_hashes_report_their_algorithm() -> None:
    observables = detect_observables(f"md5 {MD5} sha256 {SHA256}")

    assert [(item.type, item.hash_type) for item in observables] == [
        ("StixFile", "MD5"),
        ("StixFile", "SHA-256"),
    ]


def test_cve_is_normalized() -> None:
    observables = detect_observables("Patch cve\u20112024\u20113094 now")

    assert _types(observables) == ["Vulnerability"]
    assert observables[0].refanged_value == "CVE-2024-3094"
    assert observables[0].as_scan_record()["matchedValue"] == "cve\u20112024\u20113094"


def test_mixed_indicators_are_ordered_by_position() -> None:
    text = "T1059.001 from 00:1a:2b:3c:4d:5e mailing ops[@]example[.]org"

    observables = detect_observables(text)

    assert _types(observables) == ["Attack-Pattern", "Mac-Addr", "Email-Addr"]
    assert observables[2].refanged_value == "ops@example.org"


def test_bare_domains_are_detected_clear_and_defanged() -> None:
    text = "C2 at update-check[.]net and cdn.evil.co.uk. Loader saved as index.html"

    observables = detect_observables(text)

    assert _types(observables) == ["Domain-Name", "Domain-Name"]
    assert [item.refanged_value for item in observables] == ["update-check.net", "cdn.evil.co.uk"]
    assert observables[0].is_defanged is True


def test_domain_requires_a_known_suffix() -> None:
    assert detect_observables("see evil.community and Ransomware.Live") == ()


def test_ipv6_addresses_are_detected() -> None:
    observables = detect_observables("Traffic from 2001:db8::1 and fe80::1ff:fe23:4567:890a.")

    assert _types(observables) == ["IPv6-Addr", "IPv6-Addr"]
    assert [item.value for item in observables] == ["2001:db8::1", "fe80::1ff:fe23:4567:890a"]


def test_ssdeep_hash_is_detected_but_clock_times_are_not() -> None:
    fuzzy = "3:AXGBicFlgVNhBGcL6wCrFQEv:AXGHsNhxLsr2C"

    observables = detect_observables(f"fuzzy {fuzzy} seen at 8:50:23")

    assert [(item.type, item.hash_type, item.value) for item in observables] == [
        ("StixFile", "SSDEEP", fuzzy)
    ]


def test_cryptocurrency_wallets_are_detected() -> None:
    bitcoin = "1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2"
    ethereum = "0x742d35Cc6634C0532925a3b844Bc9e7595f3fEeA"

    observables = detect_observables(f"pay {bitcoin} or {ethereum}")

    assert [(item.type, item.value) for item in observables] == [
        ("Cryptocurrency-Wallet", bitcoin),
        ("Cryptocurrency-Wallet", ethereum),
    ]


def test_autonomous_system_numbers_are_detected() -> None:
    observables = detect_observables("announced by AS13335 and ASN15169, not CLASS1")

    assert _types(observables) == ["Autonomous-System", "Autonomous-System"]
    assert [item.value for item in observables] == ["AS13335", "ASN15169"]


def test_refang_indicator_handles_common_conventions() -> None:
    assert refang_indicator("hxxps://bad[.]example[.]com") == "https://bad.example.com"
    assert refang_indicator("h[xx]p://bad(.)example{.}com") == "http://bad.example.com"
    assert refang_indicator("user[@]example[.]org") == "user@example.org"
    assert is_defanged("evil[.]com") is True
    assert is_defanged("evil.com") is False


def test_normalize_cve_unifies_dashes_and_case() -> None:
    assert normalize_cve("cve\u2013 2024 -1234") == "CVE-2024-1234"


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        ("https://example.com/a", "Url"),
        ("analyst@example.com", "Email-Addr"),
        ("CVE-2021-44228", "Vulnerability"),
        ("T1059", "Attack-Pattern"),
        (MD5, "StixFile"),
        ("8.8.8.8", "IPv4-Addr"),
        ("00-1a-2b-3c-4d-5e", "Mac-Addr"),
        ("2001:db8::1", "IPv6-Addr"),
        ("fe80::1ff:fe23:4567:890a", "IPv6-Addr"),
        ("1BvBMSEYstWetqTFn5Au4m4GFg7xJaNVN2", "Cryptocurrency-Wallet"),
        ("0x742d35Cc6634C0532925a3b844Bc9e7595f3fEeA", "Cryptocurrency-Wallet"),
        ("AS13335", "Autonomous-System"),
        ("example.com", "Domain-Name"),
        ("hello", ""),
        ("   ", ""),
    ],
)
def test_detect_observable_type(value: str, expected: str) -> None:
    assert detect_observable_type(value) == expected
