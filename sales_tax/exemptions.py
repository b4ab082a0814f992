"""
Outright zero-tax rules.

Each check is a small predicate the calculator runs before (or right
after) a rate lookup. None of them raise: every outcome is a plain value.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from sales_tax.jurisdictions import JurisdictionPolicy, JurisdictionRegistry
from sales_tax.location import BuyerLocation, Jurisdiction
from sales_tax.products import SellerTaxProfile, TaxableProduct
from sales_tax.rates import RateRow
from sales_tax.tax_ids import is_valid_business_tax_id


class BusinessIdOutcome(Enum):
    NOT_SUPPLIED = "not_supplied"
    INVALID = "invalid"  # supplied but malformed, or not accepted here
    EXEMPT = "exempt"  # reverse charge, zero tax
    RETAINED_FOR_DISPLAY = "retained_for_display"  # valid, but collection is mandated


class ExemptionEvaluator:
    """Decides when a sale carries no tax at all."""

    def __init__(self, registry: JurisdictionRegistry) -> None:
        self.registry = registry

    @staticmethod
    def zero_price(price_cents: int) -> bool:
        return price_cents == 0

    def disallowed_settlement(self, seller: Optional[SellerTaxProfile]) -> bool:
        """Seller is paid out through a merchant account we never collect for."""
        if seller is None:
            return False
        countries = {c.upper() for c in seller.merchant_account_countries}
        return bool(countries & self.registry.disallowed_settlement_countries)

    @staticmethod
    def exempt_territory(jurisdiction: Jurisdiction, location: BuyerLocation) -> bool:
        """Territories outside the VAT area of their country (e.g. Canary Islands)."""
        policy = jurisdiction.policy
        if policy is None or not policy.vat_exempt_postal_prefixes:
            return False
        postal_code = location.postal_code
        if not postal_code:
            return False
        return postal_code.startswith(policy.vat_exempt_postal_prefixes)

    @staticmethod
    def business_id_exemption(
        jurisdiction: Jurisdiction, tax_id: Optional[str]
    ) -> BusinessIdOutcome:
        if not tax_id or not tax_id.strip():
            return BusinessIdOutcome.NOT_SUPPLIED

        policy = jurisdiction.policy
        if policy is None or not policy.accepts_business_id(jurisdiction.state):
            return BusinessIdOutcome.INVALID
        if not is_valid_business_tax_id(
            policy.business_id_kind, tax_id, jurisdiction.country
        ):
            return BusinessIdOutcome.INVALID
        if policy.facilitator_overrides_business_id or not policy.reverse_charge:
            return BusinessIdOutcome.RETAINED_FOR_DISPLAY
        return BusinessIdOutcome.EXEMPT

    @staticmethod
    def physical_goods_excluded(
        product: TaxableProduct, policy: JurisdictionPolicy, row: Optional[RateRow]
    ) -> bool:
        """Physical product sold where only digital goods are taxed."""
        if not product.is_physical or policy.taxes_physical_goods:
            return False
        return not (row is not None and row.covers_physical_goods)
