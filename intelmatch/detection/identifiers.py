"""Classifiers for fixed-grammar identifier families."""
from __future__ import annotations

import re
from enum import Enum

_MITRE_ID_RE = re.compile(r"t[0-9]{4}(?:\.[0-9]{3})?|t[as][0-9]{4}", re.IGNORECASE)
_PARENT_MITRE_ID_RE = re.compile(r"t[as]?[0-9]{4}", re.IGNORECASE)
_OCTET_RE = re.compile(r"[0-9]{1,3}")
_MAC_ADDRESS_RE = re.compile(
    r"[0-9a-f]{2}([:-])[0-9a-f]{2}(?:\1[0-9a-f]{2}){4}",
    re.IGNORECASE,
)


class IdentifierKind(Enum):
    """Identifier family of a candidate name, computed once per name."""

    IP = "ip"
    MAC = "mac"
    MITRE_ID = "mitre-id"
    GENERIC = "generic"

    @property
    def needs_manual_boundary_check(self) -> bool:
        """IP, MAC and MITRE grammars are anchored tightly enough on their own."""

        return self is IdentifierKind.GENERIC


def is_mitre_id(value: str) -> bool:
    """Return True for technique, sub-technique, tactic and software IDs."""

    return _MITRE_ID_RE.fullmatch(value) is not None


def is_parent_mitre_id(value: str) -> bool:
    """Return True for MITRE IDs that are not sub-techniques."""

    return _PARENT_MITRE_ID_RE.fullmatch(value) is not None


def is_ip_address(value: str) -> bool:
    """Strict dotted-quad IPv4; defanged notation and IPv6 are rejected."""

    parts = value.split(".")
    if len(parts) != 4:
        return False
    return all(_OCTET_RE.fullmatch(part) and int(part) <= 255 for part in parts)


def is_mac_address(value: str) -> bool:
    return _MAC_ADDRESS_RE.fullmatch(value) is not None


def classify_identifier(name: str) -> IdentifierKind:
    """Classify *name* into exactly one identifier family."""

    if is_ip_address(name):
        return IdentifierKind.IP
    if is_mac_address(name):
        return IdentifierKind.MAC
    if is_mitre_id(name):
        return IdentifierKind.MITRE_ID
    return IdentifierKind.GENERIC


def needs_manual_boundary_check(name: str) -> bool:
    """Return True when regex word boundaries alone cannot be trusted for *name*.

    A regex ``\\b`` treats ``.``, ``-``, ``_`` and ``@`` as boundaries, so a short
    name would match inside ``test-linux-01`` or ``dl[.]software-update[.]org``.
    Only IP, MAC and MITRE identifiers skip the extra check.
    """

    return classify_identifier(name).needs_manual_boundary_check


__all__ = [
    "IdentifierKind",
    "classify_identifier",
    "is_ip_address",
    "is_mac_address",
    "is_mitre_id",
    "is_parent_mitre_id",
    "needs_manual_boundary_check",
]
