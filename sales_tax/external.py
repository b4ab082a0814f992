"""
External tax provider path (US and Canada).

Before any network call the adapter checks that the buyer's postal code
is usable and that the seller has nexus in the buyer's state. Either
failing means zero tax and no provider call. Otherwise the provider's
rate and breakdown are used as-is; only the final cent rounding happens
here.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Optional

from sales_tax.calculation import SalesTaxCalculation, round_half_up
from sales_tax.config import ProviderSettings
from sales_tax.jurisdictions import JurisdictionRegistry
from sales_tax.location import US, BuyerLocation, Jurisdiction, is_valid_us_zip
from sales_tax.products import SellerTaxProfile, TaxableProduct
from sales_tax.provider import ProviderOrder, TaxProvider

logger = logging.getLogger(__name__)

_CENTS = Decimal("100")


class ExternalTaxProviderAdapter:
    """Prices a sale through the external provider once local gates pass."""

    def __init__(
        self,
        provider: TaxProvider,
        registry: JurisdictionRegistry,
        settings: Optional[ProviderSettings] = None,
    ) -> None:
        self.provider = provider
        self.registry = registry
        self.settings = settings or ProviderSettings()

    def nexus_regions(self, seller: Optional[SellerTaxProfile]) -> frozenset[str]:
        if seller is not None and seller.nexus_regions is not None:
            return frozenset(s.upper() for s in seller.nexus_regions)
        return self.registry.default_nexus_states

    def has_nexus(
        self, jurisdiction: Jurisdiction, seller: Optional[SellerTaxProfile]
    ) -> bool:
        policy = jurisdiction.policy
        if policy is None or not policy.requires_nexus:
            return True
        return jurisdiction.state in self.nexus_regions(seller)

    def build_order(
        self,
        jurisdiction: Jurisdiction,
        location: BuyerLocation,
        product: TaxableProduct,
        price_cents: int,
        shipping_cents: int,
        quantity: int,
    ) -> ProviderOrder:
        return ProviderOrder(
            to_country=jurisdiction.country,
            to_state=jurisdiction.state,
            to_zip=location.postal_code if jurisdiction.country == US else None,
            unit_price=Decimal(price_cents) / _CENTS / quantity,
            shipping=Decimal(shipping_cents) / _CENTS,
            quantity=quantity,
            product_tax_code=product.provider_tax_code,
            from_country=self.settings.origin_country,
            from_state=self.settings.origin_state,
            from_zip=self.settings.origin_zip,
        )

    def calculate(
        self,
        jurisdiction: Jurisdiction,
        location: BuyerLocation,
        product: TaxableProduct,
        price_cents: int,
        shipping_cents: int = 0,
        quantity: int = 1,
        seller: Optional[SellerTaxProfile] = None,
        has_business_tax_id_input: bool = False,
        business_tax_id: Optional[str] = None,
    ) -> SalesTaxCalculation:
        if jurisdiction.country == US and not is_valid_us_zip(location.postal_code):
            logger.debug("Invalid US postal code %r, no tax", location.postal_code)
            return SalesTaxCalculation.zero_tax(price_cents)
        if jurisdiction.state is None:
            logger.debug("No region for %s sale, no tax", jurisdiction.country)
            return SalesTaxCalculation.zero_tax(price_cents)
        if not self.has_nexus(jurisdiction, seller):
            logger.debug("No nexus in %s, no tax", jurisdiction.region_key)
            return SalesTaxCalculation.zero_tax(price_cents)

        order = self.build_order(
            jurisdiction, location, product, price_cents, shipping_cents, quantity
        )
        breakdown = self.provider.tax_for_order(order)

        if breakdown.taxable_amount is not None:
            taxable_cents = breakdown.taxable_amount * _CENTS
        else:
            taxable_cents = Decimal(price_cents + shipping_cents)
        unrounded = taxable_cents * breakdown.combined_tax_rate

        return SalesTaxCalculation(
            price_cents=price_cents,
            tax_cents=round_half_up(unrounded),
            rate_source=None,
            used_external_provider=True,
            external_provider_breakdown=breakdown,
            has_business_tax_id_input=has_business_tax_id_input,
            unrounded_tax_cents=unrounded,
            business_tax_id=business_tax_id,
            is_quebec=jurisdiction.is_quebec,
        )
