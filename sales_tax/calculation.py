"""
Sales tax calculation result.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

from sales_tax.provider import ProviderBreakdown
from sales_tax.rates import RateRow


def round_half_up(amount: Union[Decimal, int, float]) -> int:
    """Round a fractional cent amount to whole cents, halves away from zero."""
    return int(Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class SalesTaxCalculation:
    """
    Outcome of one calculation. Built fresh per call and never mutated.

    ``unrounded_tax_cents`` keeps the fractional cent value for receipts;
    ``tax_cents`` is the chargeable amount.
    """

    price_cents: int
    tax_cents: int
    rate_source: Optional[RateRow] = None
    used_external_provider: bool = False
    external_provider_breakdown: Optional[ProviderBreakdown] = None
    has_business_tax_id_input: bool = False
    unrounded_tax_cents: Decimal = Decimal("0")
    business_tax_id: Optional[str] = None
    is_quebec: bool = False

    @classmethod
    def zero_tax(cls, price_cents: int) -> "SalesTaxCalculation":
        return cls(price_cents=price_cents, tax_cents=0)

    @classmethod
    def zero_business_vat(
        cls, price_cents: int, business_tax_id: Optional[str] = None, is_quebec: bool = False
    ) -> "SalesTaxCalculation":
        """Zero tax because a verified business buyer self-assesses (reverse charge)."""
        return cls(
            price_cents=price_cents,
            tax_cents=0,
            has_business_tax_id_input=True,
            business_tax_id=business_tax_id,
            is_quebec=is_quebec,
        )

    @property
    def total_cents(self) -> int:
        """Amount the buyer pays."""
        return self.price_cents + self.tax_cents

    @property
    def combined_rate(self) -> Optional[Decimal]:
        if self.external_provider_breakdown is not None:
            return self.external_provider_breakdown.combined_tax_rate
        if self.rate_source is not None:
            return self.rate_source.combined_rate
        return None

    def to_dict(self) -> dict[str, Any]:
        """Receipt-friendly representation."""
        return {
            "price_cents": self.price_cents,
            "tax_cents": self.tax_cents,
            "unrounded_tax_cents": str(self.unrounded_tax_cents),
            "total_cents": self.total_cents,
            "combined_rate": (
                str(self.combined_rate) if self.combined_rate is not None else None
            ),
            "rate_source": (
                {
                    "country": self.rate_source.country,
                    "state": self.rate_source.state,
                    "zip_code": self.rate_source.zip_code,
                    "row_id": self.rate_source.row_id,
                }
                if self.rate_source is not None
                else None
            ),
            "used_external_provider": self.used_external_provider,
            "external_provider_breakdown": (
                {
                    k: (str(v) if isinstance(v, Decimal) else v)
                    for k, v in asdict(self.external_provider_breakdown).items()
                }
                if self.external_provider_breakdown is not None
                else None
            ),
            "has_business_tax_id_input": self.has_business_tax_id_input,
            "business_tax_id": self.business_tax_id,
            "is_quebec": self.is_quebec,
        }
