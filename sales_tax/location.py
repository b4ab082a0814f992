"""
Buyer location parsing and jurisdiction resolution.

The caller hands over a loosely structured mapping; ``parse_buyer_location``
turns it into a typed ``BuyerLocation`` or an ``InvalidInputError`` value.
``resolve_jurisdiction`` then decides which sub-national region (if any)
the sale belongs to.

For the US the state always comes from the ZIP code. A missing or
malformed ZIP is not an error: it is an unknown jurisdiction and the sale
resolves to zero tax.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from sales_tax.errors import InvalidInputError
from sales_tax.jurisdictions import JurisdictionPolicy, JurisdictionRegistry

US = "US"
CANADA = "CA"
QUEBEC = "QC"

CANADIAN_PROVINCES = frozenset(
    {"AB", "BC", "MB", "NB", "NL", "NS", "NT", "NU", "ON", "PE", "QC", "SK", "YT"}
)

_US_ZIP_RE = re.compile(r"^\d{5}(?:-?\d{4})?$")
_CA_POSTAL_RE = re.compile(
    r"^[ABCEGHJ-NPRSTVXY]\d[ABCEGHJ-NPRSTV-Z] ?\d[ABCEGHJ-NPRSTV-Z]\d$"
)
_COUNTRY_RE = re.compile(r"^[A-Z]{2}$")

_STATE_KEYS = ("state", "province")
_POSTAL_KEYS = ("postal_code", "zip_code", "zip")

# First three ZIP digits -> state (inclusive ranges, USPS sectional centers)
_ZIP3_RANGES: list[tuple[int, int, str]] = [
    (5, 5, "NY"),
    (6, 9, "PR"),
    (10, 27, "MA"),
    (28, 29, "RI"),
    (30, 38, "NH"),
    (39, 49, "ME"),
    (50, 54, "VT"),
    (55, 55, "MA"),
    (56, 59, "VT"),
    (60, 69, "CT"),
    (70, 89, "NJ"),
    (100, 149, "NY"),
    (150, 196, "PA"),
    (197, 199, "DE"),
    (200, 200, "DC"),
    (201, 201, "VA"),
    (202, 205, "DC"),
    (206, 219, "MD"),
    (220, 246, "VA"),
    (247, 268, "WV"),
    (270, 289, "NC"),
    (290, 299, "SC"),
    (300, 319, "GA"),
    (320, 339, "FL"),
    (341, 349, "FL"),
    (350, 369, "AL"),
    (370, 385, "TN"),
    (386, 397, "MS"),
    (398, 399, "GA"),
    (400, 427, "KY"),
    (430, 459, "OH"),
    (460, 479, "IN"),
    (480, 499, "MI"),
    (500, 528, "IA"),
    (530, 549, "WI"),
    (550, 567, "MN"),
    (569, 569, "DC"),
    (570, 577, "SD"),
    (580, 588, "ND"),
    (590, 599, "MT"),
    (600, 629, "IL"),
    (630, 658, "MO"),
    (660, 679, "KS"),
    (680, 693, "NE"),
    (700, 715, "LA"),
    (716, 729, "AR"),
    (730, 749, "OK"),
    (750, 799, "TX"),
    (800, 816, "CO"),
    (820, 831, "WY"),
    (832, 838, "ID"),
    (840, 847, "UT"),
    (850, 865, "AZ"),
    (870, 884, "NM"),
    (885, 885, "TX"),
    (889, 898, "NV"),
    (900, 961, "CA"),
    (967, 968, "HI"),
    (970, 979, "OR"),
    (980, 994, "WA"),
    (995, 999, "AK"),
]


@dataclass(frozen=True)
class BuyerLocation:
    """Buyer's declared location. Country is always present."""

    country: str
    state: Optional[str] = None
    postal_code: Optional[str] = None


@dataclass(frozen=True)
class Jurisdiction:
    """Where a sale is taxed, as far as the engine could tell."""

    country: str
    state: Optional[str]
    policy: Optional[JurisdictionPolicy]
    is_quebec: bool = False

    @property
    def is_known(self) -> bool:
        if self.policy is None:
            return False
        if self.country in (US, CANADA):
            return self.state is not None
        return True

    @property
    def region_key(self) -> str:
        return f"{self.country}-{self.state}" if self.state else self.country


LocationResult = Union[BuyerLocation, InvalidInputError]


def _optional_str(raw: Mapping, keys: tuple[str, ...]) -> Union[str, None, InvalidInputError]:
    for key in keys:
        if key in raw and raw[key] is not None:
            value = raw[key]
            if isinstance(value, int) and not isinstance(value, bool):
                value = str(value)
            if not isinstance(value, str):
                return InvalidInputError(
                    f"Buyer location field '{key}' should be a string"
                )
            value = value.strip()
            return value or None
    return None


def parse_buyer_location(raw: Any) -> LocationResult:
    """
    Validate a raw buyer location mapping.

    Returns a ``BuyerLocation`` on success and an ``InvalidInputError``
    instance (not raised) when the input has the wrong shape.
    """
    if isinstance(raw, BuyerLocation):
        return raw
    if not isinstance(raw, Mapping):
        return InvalidInputError("Buyer location should be a mapping")

    country = raw.get("country")
    if not isinstance(country, str) or not country.strip():
        return InvalidInputError("Buyer location requires a country code")
    country = country.strip().upper()
    if not _COUNTRY_RE.match(country):
        return InvalidInputError(
            f"Buyer country should be an ISO 3166 alpha-2 code, got {country!r}"
        )

    state = _optional_str(raw, _STATE_KEYS)
    if isinstance(state, InvalidInputError):
        return state
    postal_code = _optional_str(raw, _POSTAL_KEYS)
    if isinstance(postal_code, InvalidInputError):
        return postal_code

    return BuyerLocation(
        country=country,
        state=state.upper() if state else None,
        postal_code=postal_code.upper() if postal_code else None,
    )


def is_valid_us_zip(postal_code: Optional[str]) -> bool:
    return bool(postal_code) and _US_ZIP_RE.match(postal_code) is not None


def us_state_for_zip(postal_code: Optional[str]) -> Optional[str]:
    """Return the two-letter state for a US ZIP, or None when unknown."""
    if not is_valid_us_zip(postal_code):
        return None
    prefix = int(postal_code[:3])
    for low, high, state in _ZIP3_RANGES:
        if low <= prefix <= high:
            return state
    return None


def is_valid_ca_postal_code(postal_code: Optional[str]) -> bool:
    return bool(postal_code) and _CA_POSTAL_RE.match(postal_code.upper()) is not None


def resolve_jurisdiction(
    location: BuyerLocation, registry: JurisdictionRegistry
) -> Jurisdiction:
    """Work out the taxing jurisdiction for a validated buyer location."""
    policy = registry.get(location.country)

    if location.country == US:
        return Jurisdiction(US, us_state_for_zip(location.postal_code), policy)

    if location.country == CANADA:
        province = location.state if location.state in CANADIAN_PROVINCES else None
        if location.postal_code and not is_valid_ca_postal_code(location.postal_code):
            province = None
        return Jurisdiction(
            CANADA, province, policy, is_quebec=province == QUEBEC
        )

    return Jurisdiction(location.country, location.state, policy)
