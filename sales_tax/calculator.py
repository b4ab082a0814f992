"""
Sales tax calculation orchestrator.

Sequences a single calculation:

    Start -> Validate -> CheckZeroPriceExemption -> ResolveJurisdiction
          -> CheckBusinessIDExemption
          -> DomesticLookup | ProviderLookup | GateClosed
          -> Round -> Done            (or Failed)

Each call is a pure function of its inputs, the rate store snapshot,
the jurisdiction registry and the rollout config. The only blocking step
is the external provider request for US / Canadian sales.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Optional

from sales_tax.calculation import SalesTaxCalculation, round_half_up
from sales_tax.config import ProviderSettings
from sales_tax.domestic import DomesticRateResolver
from sales_tax.errors import InvalidInputError, TaxEngineError
from sales_tax.exemptions import BusinessIdOutcome, ExemptionEvaluator
from sales_tax.external import ExternalTaxProviderAdapter
from sales_tax.jurisdictions import JurisdictionPolicy, JurisdictionRegistry
from sales_tax.location import (
    BuyerLocation,
    parse_buyer_location,
    resolve_jurisdiction,
)
from sales_tax.products import ContextFlags, SellerTaxProfile, TaxableProduct
from sales_tax.provider import TaxJarProvider, TaxProvider
from sales_tax.rates import RateRow, RateStore
from sales_tax.rollout import RolloutConfig
from sales_tax.tax_ids import normalize_tax_id

logger = logging.getLogger(__name__)


class Stage(Enum):
    START = "start"
    VALIDATE = "validate"
    CHECK_ZERO_PRICE = "check_zero_price_exemption"
    RESOLVE_JURISDICTION = "resolve_jurisdiction"
    CHECK_BUSINESS_ID = "check_business_id_exemption"
    DOMESTIC_LOOKUP = "domestic_lookup"
    PROVIDER_LOOKUP = "provider_lookup"
    GATE_CLOSED = "gate_closed"
    ROUND = "round"
    DONE = "done"
    FAILED = "failed"


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _enter(stage: Stage, **details: Any) -> None:
    if details:
        logger.debug("stage=%s %s", stage.value, details)
    else:
        logger.debug("stage=%s", stage.value)


class SalesTaxCalculator:
    """
    Transaction-time tax determination engine.

    Rollout switches, reference data and the provider client are all
    passed in at construction; nothing is read from global state.
    """

    def __init__(
        self,
        rate_store: Optional[RateStore] = None,
        rollout: Optional[RolloutConfig] = None,
        registry: Optional[JurisdictionRegistry] = None,
        provider: Optional[TaxProvider] = None,
        provider_settings: Optional[ProviderSettings] = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        self.registry = registry or JurisdictionRegistry.default()
        self.rate_store = rate_store or RateStore()
        self.rollout = rollout or RolloutConfig()
        self.provider_settings = provider_settings or ProviderSettings()
        self.clock = clock

        self.exemptions = ExemptionEvaluator(self.registry)
        self.domestic = DomesticRateResolver(self.rate_store)
        self.external = ExternalTaxProviderAdapter(
            provider or TaxJarProvider(self.provider_settings),
            self.registry,
            self.provider_settings,
        )

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @staticmethod
    def _validate(
        product: Any,
        price_cents: Any,
        buyer_location: Any,
        shipping_cents: Any,
        quantity: Any,
        buyer_business_tax_id: Any,
        seller: Any,
        context: Any,
    ) -> BuyerLocation:
        if not isinstance(product, TaxableProduct):
            raise InvalidInputError("Product should be a TaxableProduct instance")
        if not _is_int(price_cents):
            raise InvalidInputError("Price (cents) should be an integer")
        if price_cents < 0:
            raise InvalidInputError("Price (cents) should not be negative")
        if shipping_cents is not None and (not _is_int(shipping_cents) or shipping_cents < 0):
            raise InvalidInputError("Shipping (cents) should be a non-negative integer")
        if not _is_int(quantity) or quantity < 1:
            raise InvalidInputError("Quantity should be a positive integer")
        if buyer_business_tax_id is not None and not isinstance(buyer_business_tax_id, str):
            raise InvalidInputError("Business tax ID should be a string")
        if seller is not None and not isinstance(seller, SellerTaxProfile):
            raise InvalidInputError("Seller should be a SellerTaxProfile instance")
        if context is not None and not isinstance(context, ContextFlags):
            raise InvalidInputError("Context should be a ContextFlags instance")

        location = parse_buyer_location(buyer_location)
        if isinstance(location, InvalidInputError):
            raise location
        return location

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    def calculate(
        self,
        product: TaxableProduct,
        price_cents: int,
        buyer_location: Any,
        shipping_cents: Optional[int] = None,
        quantity: int = 1,
        buyer_business_tax_id: Optional[str] = None,
        seller: Optional[SellerTaxProfile] = None,
        context: Optional[ContextFlags] = None,
        as_of: Optional[date] = None,
    ) -> SalesTaxCalculation:
        """
        Calculate the tax owed on one sale.

        When ``shipping_cents`` is omitted the product's shipping rate to
        the buyer's country is charged per item.

        Raises ``InvalidInputError`` for malformed inputs and
        ``TaxProviderUnavailableError`` when a US / Canadian rate cannot
        be fetched. Every other outcome is a ``SalesTaxCalculation``.
        """
        _enter(Stage.START)
        try:
            result = self._run(
                product,
                price_cents,
                buyer_location,
                shipping_cents,
                quantity,
                buyer_business_tax_id,
                seller,
                context,
                as_of,
            )
        except TaxEngineError as e:
            _enter(Stage.FAILED, error=type(e).__name__)
            raise
        _enter(Stage.DONE, tax_cents=result.tax_cents)
        return result

    def _run(
        self,
        product: TaxableProduct,
        price_cents: int,
        buyer_location: Any,
        shipping_cents: Optional[int],
        quantity: int,
        buyer_business_tax_id: Optional[str],
        seller: Optional[SellerTaxProfile],
        context: Optional[ContextFlags],
        as_of: Optional[date],
    ) -> SalesTaxCalculation:
        _enter(Stage.VALIDATE)
        location = self._validate(
            product,
            price_cents,
            buyer_location,
            shipping_cents,
            quantity,
            buyer_business_tax_id,
            seller,
            context,
        )
        if shipping_cents is None:
            shipping_cents = product.shipping_cents_for(location.country) * quantity
        if context is not None and context.from_recommendation_surface:
            logger.debug("Sale originated from a recommendation surface")

        _enter(Stage.CHECK_ZERO_PRICE)
        if self.exemptions.zero_price(price_cents):
            return SalesTaxCalculation.zero_tax(price_cents)
        if self.exemptions.disallowed_settlement(seller):
            logger.debug("Seller settlement configuration excludes collection")
            return SalesTaxCalculation.zero_tax(price_cents)

        _enter(Stage.RESOLVE_JURISDICTION, country=location.country)
        jurisdiction = resolve_jurisdiction(location, self.registry)
        if not jurisdiction.is_known:
            logger.debug("Unknown jurisdiction %s, no tax", jurisdiction.region_key)
            return SalesTaxCalculation.zero_tax(price_cents)
        policy = jurisdiction.policy

        _enter(Stage.CHECK_BUSINESS_ID)
        outcome = self.exemptions.business_id_exemption(
            jurisdiction, buyer_business_tax_id
        )
        if outcome is BusinessIdOutcome.EXEMPT:
            return SalesTaxCalculation.zero_business_vat(
                price_cents,
                business_tax_id=normalize_tax_id(buyer_business_tax_id),
                is_quebec=jurisdiction.is_quebec,
            )
        business_id_input = (
            outcome is not BusinessIdOutcome.NOT_SUPPLIED
            or policy.accepts_business_id(jurisdiction.state)
        )
        retained_id = (
            normalize_tax_id(buyer_business_tax_id)
            if outcome is BusinessIdOutcome.RETAINED_FOR_DISPLAY
            else None
        )

        if policy.uses_external_provider:
            _enter(Stage.PROVIDER_LOOKUP, region=jurisdiction.region_key)
            return self.external.calculate(
                jurisdiction,
                location,
                product,
                price_cents,
                shipping_cents=shipping_cents,
                quantity=quantity,
                seller=seller,
                has_business_tax_id_input=business_id_input,
                business_tax_id=retained_id,
            )

        if self.exemptions.exempt_territory(jurisdiction, location):
            logger.debug("Postal code %s is outside the VAT area", location.postal_code)
            return SalesTaxCalculation.zero_tax(price_cents)

        if not self.rollout.is_open(policy):
            _enter(Stage.GATE_CLOSED, country=policy.code)
            return SalesTaxCalculation.zero_tax(price_cents)

        year = (as_of or self.clock()).year
        _enter(Stage.DOMESTIC_LOOKUP, region=jurisdiction.region_key, year=year)
        row = self.domestic.resolve(jurisdiction, location, product, year)
        if row is None:
            return SalesTaxCalculation.zero_tax(price_cents)
        if self.exemptions.physical_goods_excluded(product, policy, row):
            logger.debug("%s taxes digital goods only", policy.code)
            return SalesTaxCalculation.zero_tax(price_cents)

        if not self._collects(policy, row, product, seller):
            # Seller remits this one; keep the row for the receipt.
            return SalesTaxCalculation(
                price_cents=price_cents,
                tax_cents=0,
                rate_source=row,
                has_business_tax_id_input=business_id_input,
                business_tax_id=retained_id,
                is_quebec=jurisdiction.is_quebec,
            )

        _enter(Stage.ROUND, rate=str(row.combined_rate))
        unrounded = Decimal(price_cents) * row.combined_rate
        return SalesTaxCalculation(
            price_cents=price_cents,
            tax_cents=round_half_up(unrounded),
            rate_source=row,
            has_business_tax_id_input=business_id_input,
            unrounded_tax_cents=unrounded,
            business_tax_id=retained_id,
            is_quebec=jurisdiction.is_quebec,
        )

    @staticmethod
    def _collects(
        policy: JurisdictionPolicy,
        row: RateRow,
        product: TaxableProduct,
        seller: Optional[SellerTaxProfile],
    ) -> bool:
        """
        Whether the platform collects tax on this row.

        Platform-collected rows always are. Seller-responsible rows are
        still collected for digital goods under marketplace facilitator
        rules, and for physical goods when the seller opted in to VAT
        collection. Tax is always added on top of the price.
        """
        if not row.is_seller_responsible:
            return True
        if not policy.marketplace_facilitator:
            return False
        if not product.is_physical:
            return True
        return seller is not None and seller.collect_eu_vat
