"""Shared fixtures: a fake external tax provider and the packaged registry."""

from decimal import Decimal

import pytest

from sales_tax.jurisdictions import JurisdictionRegistry
from sales_tax.provider import ProviderBreakdown


class FakeProvider:
    """Records every order it is asked to price."""

    def __init__(self, breakdown: ProviderBreakdown | None = None, error: Exception | None = None):
        self.breakdown = breakdown
        self.error = error
        self.orders = []

    @property
    def calls(self) -> int:
        return len(self.orders)

    def tax_for_order(self, order):
        self.orders.append(order)
        if self.error is not None:
            raise self.error
        return self.breakdown


WA_BREAKDOWN = ProviderBreakdown(
    combined_tax_rate=Decimal("0.1025"),
    state_tax_rate=Decimal("0.065"),
    county_tax_rate=Decimal("0.003"),
    city_tax_rate=Decimal("0.0115"),
    jurisdiction_state="WA",
    jurisdiction_county="KING",
    jurisdiction_city="SEATTLE",
    taxable_amount=Decimal("11.0"),
    amount_to_collect=Decimal("1.13"),
    freight_taxable=True,
)

ON_BREAKDOWN = ProviderBreakdown(
    combined_tax_rate=Decimal("0.13"),
    gst_tax_rate=Decimal("0.05"),
    pst_tax_rate=Decimal("0.08"),
    qst_tax_rate=Decimal("0.0"),
)

QC_BREAKDOWN = ProviderBreakdown(
    combined_tax_rate=Decimal("0.14975"),
    gst_tax_rate=Decimal("0.05"),
    pst_tax_rate=Decimal("0.0"),
    qst_tax_rate=Decimal("0.09975"),
)


@pytest.fixture
def registry() -> JurisdictionRegistry:
    return JurisdictionRegistry.default()


@pytest.fixture
def make_provider():
    def _make(breakdown: ProviderBreakdown = WA_BREAKDOWN, error: Exception | None = None) -> FakeProvider:
        return FakeProvider(breakdown, error)
    return _make


@pytest.fixture
def provider(make_provider) -> FakeProvider:
    return make_provider()


@pytest.fixture
def ontario_provider(make_provider) -> FakeProvider:
    return make_provider(ON_BREAKDOWN)


@pytest.fixture
def quebec_provider(make_provider) -> FakeProvider:
    return make_provider(QC_BREAKDOWN)
