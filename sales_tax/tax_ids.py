"""
Business tax ID format validation.

Checks that a buyer-supplied VAT / GST / QST / TIN number is well formed
according to the issuing authority's published format (and checksum,
where one exists). No remote registry is consulted.
"""

from __future__ import annotations

import re
from typing import Callable, Optional

# Member-state VAT number bodies, without the two-letter prefix
_EU_VAT_PATTERNS: dict[str, str] = {
    "AT": r"U\d{8}",
    "BE": r"[01]\d{9}",
    "BG": r"\d{9,10}",
    "CY": r"\d{8}[A-Z]",
    "CZ": r"\d{8,10}",
    "DE": r"\d{9}",
    "DK": r"\d{8}",
    "EE": r"\d{9}",
    "EL": r"\d{9}",
    "ES": r"[A-Z0-9]\d{7}[A-Z0-9]",
    "FI": r"\d{8}",
    "FR": r"[A-HJ-NP-Z0-9]{2}\d{9}",
    "GB": r"\d{9}|\d{12}|GD\d{3}|HA\d{3}",
    "HR": r"\d{11}",
    "HU": r"\d{8}",
    "IE": r"\d{7}[A-W][A-I]?|\d[A-Z+*]\d{5}[A-W]",
    "IT": r"\d{11}",
    "LT": r"\d{9}|\d{12}",
    "LU": r"\d{8}",
    "LV": r"\d{11}",
    "MT": r"\d{8}",
    "NL": r"\d{9}B\d{2}",
    "PL": r"\d{10}",
    "PT": r"\d{9}",
    "RO": r"\d{2,10}",
    "SE": r"\d{12}",
    "SI": r"\d{8}",
    "SK": r"\d{10}",
}

# Greece issues VAT numbers under the EL prefix
_VAT_PREFIX_ALIASES = {"GR": "EL"}

_GENERIC_PATTERNS: dict[str, str] = {
    "AE": r"\d{15}",
    "CH": r"CHE\d{9}(?:MWST|TVA|IVA)?",
    "IN": r"\d{2}[A-Z]{5}\d{4}[A-Z][1-9A-Z]Z[0-9A-Z]",
    "IS": r"\d{5,6}",
    "JP": r"T?\d{13}",
    "KR": r"\d{10}",
    "MX": r"[A-Z&Ñ]{3,4}\d{6}[A-Z0-9]{3}",
    "NZ": r"\d{8,9}",
    "RU": r"\d{10}|\d{12}",
    "SA": r"3\d{13}3",
    "TH": r"\d{13}",
    "TR": r"\d{10}",
    "ZA": r"4\d{9}",
}
_GENERIC_FALLBACK = r"[A-Z0-9]{8,20}"

_SIMPLE_PATTERNS: dict[str, str] = {
    "qst": r"\d{10}TQ\d{4}",
    "sg_gst": r"M[0-9A-Z]\d{7}[0-9A-Z]|\d{8,9}[A-Z]|[TSR]\d{2}[A-Z]{2}\d{4}[A-Z]",
    "kra_pin": r"[AP]\d{9}[A-Z]",
    "bh_trn": r"\d{15}",
    "om_vat": r"OM\d{10}",
    "firs_tin": r"\d{12}",
    "tra_tin": r"\d{9}",
}

_ABN_WEIGHTS = (10, 1, 3, 5, 7, 9, 11, 13, 15, 17, 19)
_MVA_WEIGHTS = (3, 2, 7, 6, 5, 4, 3, 2)

_STRIP_RE = re.compile(r"[\s.\-/]")


def normalize_tax_id(value: str) -> str:
    """Uppercase and drop spaces, dots, dashes and slashes."""
    return _STRIP_RE.sub("", value).upper()


def _full_match(pattern: str, value: str) -> bool:
    return re.fullmatch(f"(?:{pattern})", value) is not None


def _valid_eu_vat(value: str, country: str) -> bool:
    prefix = _VAT_PREFIX_ALIASES.get(country, country)
    pattern = _EU_VAT_PATTERNS.get(prefix)
    if pattern is None:
        return False
    if value[:2].isalpha():
        given = _VAT_PREFIX_ALIASES.get(value[:2], value[:2])
        if given in _EU_VAT_PATTERNS:
            if given != prefix:
                return False
            value = value[2:]
    return _full_match(pattern, value)


def _valid_abn(value: str, country: str) -> bool:
    if not re.fullmatch(r"\d{11}", value):
        return False
    digits = [int(d) for d in value]
    digits[0] -= 1
    return sum(d * w for d, w in zip(digits, _ABN_WEIGHTS)) % 89 == 0


def _valid_mva(value: str, country: str) -> bool:
    if value.startswith("NO"):
        value = value[2:]
    if value.endswith("MVA"):
        value = value[:-3]
    if not re.fullmatch(r"\d{9}", value):
        return False
    digits = [int(d) for d in value]
    remainder = sum(d * w for d, w in zip(digits, _MVA_WEIGHTS)) % 11
    check = 0 if remainder == 0 else 11 - remainder
    return check != 10 and check == digits[8]


def _valid_generic(value: str, country: str) -> bool:
    return _full_match(_GENERIC_PATTERNS.get(country, _GENERIC_FALLBACK), value)


_VALIDATORS: dict[str, Callable[[str, str], bool]] = {
    "eu_vat": _valid_eu_vat,
    "abn": _valid_abn,
    "mva": _valid_mva,
    "generic": _valid_generic,
}
for _kind, _pattern in _SIMPLE_PATTERNS.items():
    _VALIDATORS[_kind] = lambda value, country, _p=_pattern: _full_match(_p, value)


def known_kinds() -> list[str]:
    return sorted(_VALIDATORS)


def is_valid_business_tax_id(
    kind: Optional[str], value: Optional[str], country: str
) -> bool:
    """
    Check a business tax ID against the format its authority issues.

    ``kind`` comes from the jurisdiction policy (``eu_vat``, ``abn``,
    ``qst`` ...). Unknown kinds and blank values are never valid.
    """
    if not kind or not value or not isinstance(value, str):
        return False
    validator = _VALIDATORS.get(kind)
    if validator is None:
        return False
    normalized = normalize_tax_id(value)
    if not normalized:
        return False
    return validator(normalized, country.upper())
