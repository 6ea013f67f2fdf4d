"""Vessel identity helpers — IMO normalisation and vessel name comparison.

Incident reports name the same hull in many ways ("M/V OCEAN STAR",
"Ocean Star", "MT OCEAN-STAR"). IMO numbers are globally unique, so they are
compared exactly; names are normalised and compared fuzzily.
"""
from __future__ import annotations

import re

from rapidfuzz import fuzz
from unidecode import unidecode

# Hull prefixes / suffixes that carry no identity
_HULL_PREFIX_RE = re.compile(
    r"\b(M\s*/?\s*V|M\s*/?\s*T|MV|MT|MOTOR\s+VESSEL|MOTOR\s+TANKER|VESSEL|TANKER|SS)\b",
    re.IGNORECASE,
)
_PUNCT_RE = re.compile(r"[^\w\s]", re.UNICODE)
_MULTI_SPACE_RE = re.compile(r"\s+")
_IMO_DIGITS_RE = re.compile(r"\d{7}")

# Vessel type families used as a weak corroborating signal
_VESSEL_TYPE_FAMILIES: dict[str, tuple[str, ...]] = {
    "TANKER": ("TANKER", "CRUDE", "PRODUCT", "CHEMICAL", "LPG", "LNG", "OIL"),
    "BULK": ("BULK", "BULKER", "ORE"),
    "CONTAINER": ("CONTAINER", "BOXSHIP"),
    "CARGO": ("CARGO", "GENERAL CARGO", "REEFER", "RO RO", "RORO"),
    "FISHING": ("FISHING", "TRAWLER", "DHOW"),
    "TUG": ("TUG", "SUPPLY", "OFFSHORE"),
    "PASSENGER": ("PASSENGER", "FERRY", "CRUISE"),
}


def imo_checksum_ok(imo: str) -> bool:
    """True when a normalised 7-digit IMO carries a valid check digit.

    The first six digits are weighted 7 down to 2; the sum's last digit
    must equal the seventh.
    """
    if len(imo) != 7 or not imo.isdigit():
        return False
    weighted = sum(int(digit) * weight for digit, weight in zip(imo[:6], range(7, 1, -1)))
    return weighted % 10 == int(imo[6])


def normalize_imo(imo: str | int | None) -> str | None:
    """Extract the 7-digit IMO number from free text, or None.

    Accepts "IMO 9074729", "9074729", 9074729. Does not enforce the check
    digit: collectors frequently transcribe a digit wrong, and the scorer
    weighs such numbers with ``imo_checksum_ok`` instead of discarding them.
    """
    if imo is None:
        return None
    text = str(imo).strip()
    if not text:
        return None
    match = _IMO_DIGITS_RE.search(text.replace(" ", ""))
    return match.group(0) if match else None


def normalize_vessel_name(name: str | None) -> str:
    """Normalize a vessel name for comparison.

    Steps:
    1. Transliterate to ASCII (unidecode)
    2. Uppercase
    3. Strip hull prefixes (M/V, M/T, MOTOR VESSEL, …)
    4. Remove punctuation
    5. Collapse whitespace
    """
    if not name:
        return ""
    text = unidecode(name).upper()
    text = _HULL_PREFIX_RE.sub(" ", text)
    text = _PUNCT_RE.sub(" ", text)
    return _MULTI_SPACE_RE.sub(" ", text).strip()


def vessel_name_similarity(name1: str | None, name2: str | None) -> float:
    """Similarity between two vessel names in [0, 1].

    Exact normalised match → 1.0, one name contained in the other → 0.9,
    otherwise the rapidfuzz edit-distance ratio.
    """
    n1 = normalize_vessel_name(name1)
    n2 = normalize_vessel_name(name2)
    if not n1 or not n2:
        return 0.0
    if n1 == n2:
        return 1.0
    if n1 in n2 or n2 in n1:
        return 0.9
    return fuzz.ratio(n1, n2) / 100.0


# Whole-word patterns, so "ORE" never matches "CORE" nor "OIL" "SOIL"
_VESSEL_TYPE_PATTERNS: dict[str, re.Pattern] = {
    family: re.compile(r"\b(?:" + "|".join(re.escape(kw) for kw in keywords) + r")\b")
    for family, keywords in _VESSEL_TYPE_FAMILIES.items()
}


def _vessel_type_family(vessel_type: str) -> str | None:
    upper = _MULTI_SPACE_RE.sub(" ", _PUNCT_RE.sub(" ", unidecode(vessel_type).upper())).strip()
    for family, pattern in _VESSEL_TYPE_PATTERNS.items():
        if pattern.search(upper):
            return family
    return upper or None


def vessel_types_match(type1: str | None, type2: str | None) -> bool:
    """True when both types are present and belong to the same family."""
    if not type1 or not type2:
        return False
    fam1 = _vessel_type_family(type1)
    fam2 = _vessel_type_family(type2)
    return fam1 is not None and fam1 == fam2
