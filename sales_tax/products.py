"""
Sale inputs supplied by the catalog and seller-settings collaborators.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class NativeType(Enum):
    DIGITAL = "digital"
    EBOOK = "ebook"
    AUDIOBOOK = "audiobook"
    COURSE = "course"
    MEMBERSHIP = "membership"
    NEWSLETTER = "newsletter"
    PODCAST = "podcast"
    PHYSICAL = "physical"
    BUNDLE = "bundle"
    COMMISSION = "commission"
    CALL = "call"
    COFFEE = "coffee"


# Product tax codes understood by the external provider. None means the
# provider's default (fully taxable tangible goods).
_PROVIDER_TAX_CODES: dict[NativeType, Optional[str]] = {
    NativeType.DIGITAL: "31000",
    NativeType.EBOOK: "31000",
    NativeType.AUDIOBOOK: "31000",
    NativeType.COURSE: "31000",
    NativeType.MEMBERSHIP: "31000",
    NativeType.NEWSLETTER: "31000",
    NativeType.PODCAST: "31000",
    NativeType.BUNDLE: "31000",
    NativeType.PHYSICAL: None,
    NativeType.COMMISSION: "19000",
    NativeType.CALL: "19000",
    NativeType.COFFEE: "19000",
}


@dataclass(frozen=True)
class TaxableProduct:
    """Tax-relevant attributes of the catalog item being sold."""

    is_physical: bool = False
    is_epublication: bool = False
    native_type: NativeType = NativeType.DIGITAL
    requires_shipping: bool = False
    shipping_rates_cents: dict[str, int] = field(default_factory=dict)

    @property
    def provider_tax_code(self) -> Optional[str]:
        return _PROVIDER_TAX_CODES.get(self.native_type)

    def shipping_cents_for(self, country: str) -> int:
        """One-item shipping rate to a country, 0 when not shipped there."""
        if not self.requires_shipping:
            return 0
        return self.shipping_rates_cents.get(country.upper(), 0)


@dataclass(frozen=True)
class SellerTaxProfile:
    """
    Seller settings that influence collection.

    ``nexus_regions`` of None means the platform's registered marketplace
    facilitator states apply.
    """

    collect_eu_vat: bool = False
    merchant_account_countries: frozenset[str] = field(default_factory=frozenset)
    nexus_regions: Optional[frozenset[str]] = None


@dataclass(frozen=True)
class ContextFlags:
    """Where the sale came from. Never changes the rate math."""

    from_recommendation_surface: bool = False
