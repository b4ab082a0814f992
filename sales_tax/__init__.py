"""
Sales Tax Engine
================

Transaction-time VAT / GST / US sales tax determination for single sales
of digital and physical goods.

Modules:
    jurisdictions - Per-country policy registry (packaged YAML)
    rollout       - Rollout switches for gated countries
    location      - Buyer location parsing and jurisdiction resolution
    tax_ids       - Business tax ID format validation
    products      - Product, seller and context inputs
    rates         - Jurisdiction rate rows and the rate store
    exemptions    - Zero-tax rules (zero price, reverse charge, territories)
    domestic      - Rate row selection for non-US sales
    provider      - External tax provider client (US / Canada)
    external      - Provider path of a calculation (nexus, rounding)
    calculation   - Calculation result value
    calculator    - Calculation orchestrator
    config        - Provider connection settings
    cli           - Command-line interface
"""

__version__ = "1.0.0"

from sales_tax.calculation import SalesTaxCalculation, round_half_up
from sales_tax.calculator import SalesTaxCalculator
from sales_tax.config import ProviderSettings
from sales_tax.errors import (
    InvalidInputError,
    TaxEngineError,
    TaxProviderUnavailableError,
)
from sales_tax.jurisdictions import JurisdictionPolicy, JurisdictionRegistry
from sales_tax.location import BuyerLocation, parse_buyer_location
from sales_tax.products import ContextFlags, NativeType, SellerTaxProfile, TaxableProduct
from sales_tax.provider import ProviderBreakdown, TaxJarProvider
from sales_tax.rates import RateRow, RateStore
from sales_tax.rollout import RolloutConfig

__all__ = [
    "SalesTaxCalculator",
    "SalesTaxCalculation",
    "round_half_up",
    "ProviderSettings",
    "TaxEngineError",
    "InvalidInputError",
    "TaxProviderUnavailableError",
    "JurisdictionPolicy",
    "JurisdictionRegistry",
    "BuyerLocation",
    "parse_buyer_location",
    "TaxableProduct",
    "SellerTaxProfile",
    "ContextFlags",
    "NativeType",
    "ProviderBreakdown",
    "TaxJarProvider",
    "RateRow",
    "RateStore",
    "RolloutConfig",
]
