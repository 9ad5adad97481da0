"""Fixed-grammar observable detection with defang support."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, Tuple
from urllib.parse import urlsplit

from intelmatch.detection.boundaries import AcceptedRangeSet
from intelmatch.detection.models import CharRange, DetectedObservable
from intelmatch.utils.text import build_context_snippet

logger = logging.getLogger("intelmatch.detection.observables")

_DOT = r"(?:\.|\[\.\]|\(\.\)|\{\.\})"
_AT = r"(?:@|\[@\]|\(@\)|\{@\})"
_OCTET = r"(?:25[0-5]|2[0-4][0-9]|[01]?[0-9][0-9]?)"
_LABEL = r"[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"

_HEX4 = r"[0-9a-fA-F]{1,4}"
_DOTTED_QUAD = rf"(?:{_OCTET}\.){{3}}{_OCTET}"

# Suffixes accepted as the final label of a bare domain name.
_TLDS = frozenset(
    """
    com net org edu gov mil int co io ai app dev cloud tech info biz name pro museum aero coop
    travel jobs mobi tel asia cat xxx post mail onion bit i2p eth crypto nft web3 zil luxe xyz
    online site website store shop blog news media agency studio design digital marketing
    consulting solutions services systems network technology software hardware security cyber
    data analytics platform exchange finance bank money capital fund invest trade market forex
    token coin chain block ledger wallet pay cash credit debit loan insurance health medical
    pharma bio life care clinic hospital doctor nurse patient therapy fitness gym sport game play
    music video photo art fashion beauty food restaurant cafe bar hotel tour flight car auto moto
    bike boat ship plane train bus taxi uber lyft amazon google apple microsoft facebook twitter
    instagram linkedin youtube tiktok snapchat whatsapp telegram signal discord slack zoom teams
    meet webex skype outlook gmail yahoo hotmail icloud proton tutanota fastmail zoho mailchimp
    sendgrid mailgun postmark ses sns sqs s3 ec2 rds lambda cloudfront route53 elb alb nlb vpc iam
    kms ssm secrets parameter config cloudwatch cloudtrail guardduty inspector macie securityhub
    detective artifact codepipeline codebuild codecommit codedeploy codestar cloud9 cloudshell
    amplify appsync cognito pinpoint lex polly rekognition textract comprehend translate
    transcribe personalize forecast fraud lookout panorama robomaker ground iot greengrass
    freertos sitewise twinmaker fleetwise healthlake omics braket deadline simspace nimble
    thinkbox lumberyard gamelift gamesparks
    uk us eu de fr it es nl be at ch pl cz sk hu ro bg hr si rs ua ru by kz uz tm tj kg az ge am md
    ee lv lt fi se no dk is ie pt gr cy mt tr il ae sa qa kw bh om jo lb sy iq ir pk in bd lk np bt
    mm th vn la kh my sg id ph tw hk mo jp kr kp mn cn au nz fj pg sb vu nc pf ws to tv ki nr fm mh
    pw gu mp as vi pr mx gt bz sv hn ni cr pa cu jm ht do tt bb gd vc lc dm ag kn bs tc ky vg ms aw
    cw sx bq gp mq gf sr gy br ar cl pe ec ve bo py uy fk gs sh ac sc mu re yt km mg mz zw za na bw
    sz ls ao zm mw tz ke ug rw bi cd cg ga gq cm cf td ne ng bj tg gh ci bf ml sn gm gw gn sl lr mr
    eh ma dz tn ly eg sd ss er et dj so sbs
    """.split()
)
_TLD_ALTERNATION = "|".join(sorted(_TLDS, key=lambda tld: (-len(tld), tld)))
_FILE_EXTENSIONS = frozenset({"js", "css", "html", "php", "asp", "json", "xml", "txt"})

_CVE_DASHES = "-\u2010\u2011\u2012\u2013\u2014\u2015\u2212\u00ad\ufe63\uff0d"
_CVE_INVISIBLE = "\u200b\u200c\u200d\u2060\ufeff"
_CVE_GAP = rf"[\s{_CVE_INVISIBLE}]*"
_CVE_DASH = rf"[{_CVE_DASHES}]"

URL_PATTERN = re.compile(
    r"(?:https?|hxxps?|h\[xx\]ps?|meow)://(?:www(?:\.|\[\.\]|\(\.\)))?"
    r"[-a-zA-Z0-9@:%._+~#=\[\](){}]{1,256}(?:\.|\[\.\]|\(\.\))[a-zA-Z0-9()\[\]{}]{1,6}\b"
    r"[-a-zA-Z0-9()@:%_+.~#?&/=\[\]]*",
    re.IGNORECASE,
)
EMAIL_PATTERN = re.compile(
    rf"(?<![.\w\]])[\w.+-]+{_AT}(?:{_LABEL}{_DOT})+[a-zA-Z]{{2,}}(?![.\w\]])"
)
MD5_PATTERN = re.compile(r"(?<![a-fA-F0-9])[a-fA-F0-9]{32}(?![a-fA-F0-9])")
# "0x" plus 40 hex digits is an Ethereum wallet.
SHA1_PATTERN = re.compile(r"(?<![a-fA-F0-9])(?<!0x)[a-fA-F0-9]{40}(?![a-fA-F0-9])")
SHA256_PATTERN = re.compile(r"(?<![a-fA-F0-9])[a-fA-F0-9]{64}(?![a-fA-F0-9])")
SHA512_PATTERN = re.compile(r"(?<![a-fA-F0-9])[a-fA-F0-9]{128}(?![a-fA-F0-9])")
IPV4_PATTERN = re.compile(
    rf"(?<![.\w])(?:{_OCTET}{_DOT}){{3}}{_OCTET}"
    r"(?![\d\]]|\.\d|\.(?:js|css|html|php|asp|json|xml|txt|pdf|doc|exe|dll|zip|tar|gz|png|jpg|gif|svg)\b)"
)
MAC_PATTERN = re.compile(
    r"(?<![:\w-])[0-9A-Fa-f]{2}([:-])[0-9A-Fa-f]{2}(?:\1[0-9A-Fa-f]{2}){4}(?![:\w-])"
)
CVE_PATTERN = re.compile(
    rf"CVE{_CVE_GAP}{_CVE_DASH}{_CVE_GAP}[0-9]{{4}}{_CVE_GAP}{_CVE_DASH}{_CVE_GAP}[0-9]{{4,7}}(?![0-9])",
    re.IGNORECASE,
)
MITRE_PATTERN = re.compile(r"(?<![\w.])(?:T[0-9]{4}(?:\.[0-9]{3})?|T[AS][0-9]{4})(?!\w)")
SSDEEP_PATTERN = re.compile(r"(?<![:\d])\d{1,6}:[a-zA-Z0-9/+]{6,}:[a-zA-Z0-9/+]{6,}(?![:\da-zA-Z])")
IPV6_PATTERN = re.compile(
    r"(?<![:\w])(?:"
    rf"(?:{_HEX4}:){{7}}{_HEX4}"
    rf"|(?:{_HEX4}:){{1,7}}:"
    rf"|(?:{_HEX4}:){{1,6}}:{_HEX4}"
    rf"|(?:{_HEX4}:){{1,5}}(?::{_HEX4}){{1,2}}"
    rf"|(?:{_HEX4}:){{1,4}}(?::{_HEX4}){{1,3}}"
    rf"|(?:{_HEX4}:){{1,3}}(?::{_HEX4}){{1,4}}"
    rf"|(?:{_HEX4}:){{1,2}}(?::{_HEX4}){{1,5}}"
    rf"|{_HEX4}:(?::{_HEX4}){{1,6}}"
    rf"|:(?::{_HEX4}){{1,7}}"
    rf"|::(?:[fF]{{4}}:)?{_DOTTED_QUAD}"
    rf"|(?:{_HEX4}:){{1,4}}:{_DOTTED_QUAD}"
    r")(?![:\w])"
)
DOMAIN_PATTERN = re.compile(
    rf"(?<![.\w@/\]])(?:{_LABEL}{_DOT})+(?:{_TLD_ALTERNATION})(?![\w\]]|\.\w)",
    re.IGNORECASE,
)
BITCOIN_PATTERN = re.compile(
    r"(?<![a-zA-Z0-9])(?:[13][a-km-zA-HJ-NP-Z1-9]{25,34}|bc1[a-z0-9]{39,59})(?![a-zA-Z0-9])"
)
ETHEREUM_PATTERN = re.compile(r"(?<![a-zA-Z0-9])0x[a-fA-F0-9]{40}(?![a-zA-Z0-9])")
ASN_PATTERN = re.compile(r"(?<![a-zA-Z])ASN?\d{1,10}(?![a-zA-Z0-9])", re.IGNORECASE)

_EXACT_URL = re.compile(r"(?:https?|hxxps?|h\[xx\]ps?)://.+", re.IGNORECASE)
_EXACT_EMAIL = re.compile(rf"[\w.+-]+{_AT}(?:{_LABEL}{_DOT})+[a-zA-Z]{{2,}}")
_EXACT_CVE = re.compile(rf"CVE{_CVE_DASH}[0-9]{{4}}{_CVE_DASH}[0-9]{{4,}}", re.IGNORECASE)
_EXACT_MITRE = re.compile(r"T[0-9]{4}(?:\.[0-9]{3})?|T[AS][0-9]{4}")
_EXACT_IPV4 = re.compile(rf"(?:{_OCTET}{_DOT}){{3}}{_OCTET}")
_EXACT_MAC = re.compile(r"[0-9A-Fa-f]{2}([:-])[0-9A-Fa-f]{2}(?:\1[0-9A-Fa-f]{2}){4}")
_EXACT_IPV6 = re.compile(
    rf"(?:{_HEX4}:){{7}}{_HEX4}"
    rf"|(?:{_HEX4}:){{1,7}}:"
    rf"|:(?::{_HEX4}){{1,7}}"
    rf"|(?:{_HEX4}:)+(?::{_HEX4}){{1,6}}"
)
_EXACT_BITCOIN = re.compile(r"[13][a-km-zA-HJ-NP-Z1-9]{25,34}|bc1[a-z0-9]{39,59}")
_EXACT_ETHEREUM = re.compile(r"0x[a-fA-F0-9]{40}")
_EXACT_ASN = re.compile(r"ASN?\d{1,10}", re.IGNORECASE)
_EXACT_DOMAIN = re.compile(rf"{_LABEL}(?:{_DOT}{_LABEL})+")
_EXACT_HASHES: Tuple[tuple[int, str], ...] = ((128, "SHA-512"), (64, "SHA-256"), (40, "SHA-1"), (32, "MD5"))
_HEX_RE = re.compile(r"[a-fA-F0-9]+")

_DEFANGED_RE = re.compile(r"\[\.\]|\(\.\)|\{\.\}|\[@\]|\(@\)|\{@\}|hxxp|h\[xx\]p|\[://\]|^meow://", re.IGNORECASE)
_REFANG_RULES: Tuple[tuple[re.Pattern[str], Callable[[re.Match[str]], str] | str], ...] = (
    (re.compile(r"\[\.\]|\(\.\)|\{\.\}"), "."),
    (re.compile(r"\[@\]|\(@\)|\{@\}"), "@"),
    (re.compile(r"hxxp(s?)://", re.IGNORECASE), lambda match: f"http{match.group(1).lower()}://"),
    (re.compile(r"h\[xx\]p(s?)://", re.IGNORECASE), lambda match: f"http{match.group(1).lower()}://"),
    (re.compile(r"\[://\]|\(://\)"), "://"),
    (re.compile(r"\[/\]|\(/\)"), "/"),
    (re.compile(r"^meow://", re.IGNORECASE), "http://"),
    (re.compile(r"\[([^\]]+)\]"), r"\1"),
)


@dataclass(frozen=True)
class ObservablePattern:
    """One entry of the observable grammar table."""

    type: str
    pattern: re.Pattern[str]
    priority: int
    hash_type: str | None = None
    validate: Callable[[str], bool] | None = None
    normalize: Callable[[str], str] | None = None


def refang_indicator(value: str) -> str:
    """Undo the common defanging conventions, e.g. ``hxxp://evil[.]com``."""

    result = value
    for pattern, replacement in _REFANG_RULES:
        result = pattern.sub(replacement, result)
    return result


def is_defanged(value: str) -> bool:
    return _DEFANGED_RE.search(value) is not None


def normalize_cve(value: str) -> str:
    """Upper-case a CVE id, drop invisible characters and unify its dashes."""

    cleaned = "".join(
        "-" if char in _CVE_DASHES else char
        for char in value
        if not (char.isspace() or char in _CVE_INVISIBLE)
    )
    return cleaned.upper()


def _valid_url(value: str) -> bool:
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return bool(parts.scheme and parts.netloc)


def _valid_ipv4(value: str) -> bool:
    octets = value.split(".")
    return not (all(octet == "0" for octet in octets) or all(octet == "255" for octet in octets))


def _valid_domain(value: str) -> bool:
    head, dot, suffix = value.rpartition(".")
    return bool(head and dot) and suffix.lower() not in _FILE_EXTENSIONS


OBSERVABLE_PATTERNS: Tuple[ObservablePattern, ...] = (
    ObservablePattern("Url", URL_PATTERN, 100, validate=_valid_url),
    ObservablePattern("Email-Addr", EMAIL_PATTERN, 95),
    ObservablePattern("StixFile", SHA512_PATTERN, 90, hash_type="SHA-512"),
    ObservablePattern("StixFile", SHA256_PATTERN, 89, hash_type="SHA-256"),
    ObservablePattern("StixFile", SHA1_PATTERN, 88, hash_type="SHA-1"),
    ObservablePattern("StixFile", MD5_PATTERN, 87, hash_type="MD5"),
    ObservablePattern("StixFile", SSDEEP_PATTERN, 86, hash_type="SSDEEP"),
    ObservablePattern("Vulnerability", CVE_PATTERN, 85, normalize=normalize_cve),
    ObservablePattern("Attack-Pattern", MITRE_PATTERN, 82),
    ObservablePattern("IPv6-Addr", IPV6_PATTERN, 80),
    ObservablePattern("IPv4-Addr", IPV4_PATTERN, 79, validate=_valid_ipv4),
    ObservablePattern("Domain-Name", DOMAIN_PATTERN, 70, validate=_valid_domain),
    ObservablePattern("Mac-Addr", MAC_PATTERN, 65),
    ObservablePattern("Cryptocurrency-Wallet", BITCOIN_PATTERN, 60),
    ObservablePattern("Cryptocurrency-Wallet", ETHEREUM_PATTERN, 59),
    ObservablePattern("Autonomous-System", ASN_PATTERN, 50),
)


def detect_observables(
    text: str,
    *,
    patterns: Tuple[ObservablePattern, ...] = OBSERVABLE_PATTERNS,
    context_window: int = 50,
) -> Tuple[DetectedObservable, ...]:
    """Detect fixed-grammar indicators in *text*, ordered by position.

    Higher-priority grammars claim their spans first; a later match overlapping
    an accepted span is dropped. The same indicator seen both defanged and in
    clear text is reported once, preferring the clear spelling.
    """

    accepted = AcceptedRangeSet()
    detected: dict[str, DetectedObservable] = {}

    for config in sorted(patterns, key=lambda entry: -entry.priority):
        for found in config.pattern.finditer(text):
            observable = _build_observable(text, found, config, context_window)
            if observable is None:
                continue

            span = observable.span
            if accepted.overlaps(span.start, span.end):
                continue

            existing = detected.get(observable.dedupe_key)
            if existing is not None:
                if existing.is_defanged and not observable.is_defanged:
                    accepted.discard(existing.span.start, existing.span.end)
                    del detected[observable.dedupe_key]
                else:
                    continue

            accepted.add(span.start, span.end)
            detected[observable.dedupe_key] = observable

    results = tuple(sorted(detected.values(), key=lambda item: item.span.start))
    logger.debug("Detected observables", extra={"observable_count": len(results)})
    return results


def _build_observable(
    text: str,
    found: re.Match[str],
    config: ObservablePattern,
    context_window: int,
) -> DetectedObservable | None:
    value = found.group(0)
    defanged = is_defanged(value)
    refanged = refang_indicator(value) if defanged else value
    if config.normalize is not None:
        refanged = config.normalize(refanged)
    if config.validate is not None and not config.validate(refanged):
        return None

    start, end = found.span()
    return DetectedObservable(
        type=config.type,
        value=value,
        refanged_value=refanged,
        is_defanged=defanged,
        span=CharRange(start, end),
        context_snippet=build_context_snippet(text, (start, end), context_window),
        hash_type=config.hash_type,
    )


def detect_observable_type(value: str) -> str:
    """Return the observable type of a single value, or ``""`` when unknown."""

    trimmed = value.strip()
    if not trimmed:
        return ""
    if _EXACT_URL.fullmatch(trimmed):
        return "Url"
    if _EXACT_EMAIL.fullmatch(trimmed):
        return "Email-Addr"
    if _EXACT_CVE.fullmatch(trimmed):
        return "Vulnerability"
    if _EXACT_MITRE.fullmatch(trimmed):
        return "Attack-Pattern"
    if _HEX_RE.fullmatch(trimmed) and len(trimmed) in dict(_EXACT_HASHES):
        return "StixFile"
    if _EXACT_IPV6.fullmatch(trimmed):
        return "IPv6-Addr"
    if _EXACT_IPV4.fullmatch(trimmed):
        return "IPv4-Addr"
    if _EXACT_MAC.fullmatch(trimmed):
        return "Mac-Addr"
    if _EXACT_BITCOIN.fullmatch(trimmed) or _EXACT_ETHEREUM.fullmatch(trimmed):
        return "Cryptocurrency-Wallet"
    if _EXACT_ASN.fullmatch(trimmed):
        return "Autonomous-System"
    if _EXACT_DOMAIN.fullmatch(trimmed) and not trimmed.replace(".", "").isdigit():
        return "Domain-Name"
    return ""


__all__ = [
    "OBSERVABLE_PATTERNS",
    "ObservablePattern",
    "detect_observable_type",
    "detect_observables",
    "is_defanged",
    "normalize_cve",
    "refang_indicator",
]
