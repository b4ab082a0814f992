#!/usr/bin/env python3
"""
Quick Start Example
===================

Prices an ebook sold to a buyer in Spain, first to a consumer and then
to a business buyer with a VAT number (reverse charge).

Usage:
    python examples/quick_start.py
"""

from sales_tax import RateStore, SalesTaxCalculator, TaxableProduct
from sales_tax.rates import RateRow


def main() -> None:
    store = RateStore.from_rows([
        RateRow(country="ES", combined_rate="0.21", row_id="es-std"),
        RateRow(country="ES", combined_rate="0.04", is_epublication_rate=True, row_id="es-epub"),
    ])
    calculator = SalesTaxCalculator(rate_store=store)

    ebook = TaxableProduct(is_epublication=True)
    result = calculator.calculate(ebook, 1999, {"country": "ES", "postal_code": "28013"})

    print(f"Price:          {result.price_cents / 100:.2f}")
    print(f"Rate:           {result.combined_rate:.2%}")
    print(f"Tax:            {result.tax_cents / 100:.2f}")
    print(f"Unrounded Tax:  {result.unrounded_tax_cents} cents")
    print(f"Total:          {result.total_cents / 100:.2f}")

    print("\n--- Business Buyer ---")
    business = calculator.calculate(
        ebook,
        1999,
        {"country": "ES", "postal_code": "28013"},
        buyer_business_tax_id="ESB12345678",
    )
    print(f"Tax:            {business.tax_cents / 100:.2f}")
    print(f"Business ID:    {business.business_tax_id}")

    # Canary Islands sit outside the EU VAT area
    print("\n--- Canary Islands ---")
    canary = calculator.calculate(ebook, 1999, {"country": "ES", "postal_code": "35001"})
    print(f"Tax:            {canary.tax_cents / 100:.2f}")


if __name__ == "__main__":
    main()
