"""Tests for the SalesTaxCalculator orchestrator."""

from datetime import date
from decimal import Decimal

import pytest

from sales_tax.calculation import SalesTaxCalculation
from sales_tax.calculator import SalesTaxCalculator
from sales_tax.errors import InvalidInputError, TaxProviderUnavailableError
from sales_tax.products import ContextFlags, NativeType, SellerTaxProfile, TaxableProduct
from sales_tax.rates import RateRow, RateStore
from sales_tax.rollout import RolloutConfig

TODAY = date(2024, 6, 15)

DIGITAL = TaxableProduct()
EBOOK = TaxableProduct(is_epublication=True, native_type=NativeType.EBOOK)
PHYSICAL = TaxableProduct(is_physical=True, native_type=NativeType.PHYSICAL, requires_shipping=True)


def _row(country: str, rate: str, **kwargs) -> RateRow:
    return RateRow(country=country, combined_rate=Decimal(rate), **kwargs)


def _calc(
    rows=(),
    provider=None,
    enabled=(),
    registry=None,
    today: date = TODAY,
) -> SalesTaxCalculator:
    return SalesTaxCalculator(
        rate_store=RateStore.from_rows(rows),
        rollout=RolloutConfig.from_countries(enabled),
        registry=registry,
        provider=provider,
        clock=lambda: today,
    )


@pytest.fixture
def calc(provider) -> SalesTaxCalculator:
    return _calc(
        [
            _row("ES", "0.21", row_id="es-std"),
            _row("ES", "0.04", is_epublication_rate=True, row_id="es-epub"),
            _row("DE", "0.19", row_id="de-std"),
            _row("AU", "0.10", row_id="au-std"),
            _row("IS", "0.24", row_id="is-std"),
        ],
        provider=provider,
    )


# ── Zero-tax result ──────────────────────────────────────────────────


@pytest.mark.parametrize("price", [0, 1, 999, 10**9])
def test_zero_tax_result_keeps_price(price: int):
    result = SalesTaxCalculation.zero_tax(price)
    assert result.tax_cents == 0
    assert result.price_cents == price
    assert result.rate_source is None


@pytest.mark.parametrize(
    "location",
    [
        {"country": "ES"},
        {"country": "DE", "postal_code": "10115"},
        {"country": "US", "postal_code": "98121"},
        {"country": "CA", "state": "QC"},
        {"country": "IS"},
        {"country": "ZZ"},
    ],
)
def test_zero_price_is_zero_tax_everywhere(location: dict, provider):
    calc = _calc([_row("ES", "0.21"), _row("DE", "0.19"), _row("IS", "0.24")], provider, enabled=["IS"])
    result = calc.calculate(DIGITAL, 0, location)
    assert result.tax_cents == 0
    assert result.rate_source is None
    assert provider.calls == 0


# ── Domestic rates ───────────────────────────────────────────────────


def test_spain_standard_rate(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "ES"})
    assert result.tax_cents == 21
    assert result.rate_source.row_id == "es-std"
    assert result.used_external_provider is False


@pytest.mark.parametrize(
    "price, rate, expected",
    [
        (100, "0.21", 21),
        (1999, "0.19", 380),
        (250, "0.20", 50),
        (5, "0.10", 1),  # 0.5 rounds half up
        (333, "0.17", 57),
    ],
)
def test_eu_tax_is_price_times_rate_rounded(price: int, rate: str, expected: int):
    calc = _calc([_row("FR", rate)])
    result = calc.calculate(DIGITAL, price, {"country": "FR"})
    assert result.tax_cents == expected
    assert result.unrounded_tax_cents == Decimal(price) * Decimal(rate)


def test_fractional_cents_are_retained():
    calc = _calc([_row("CH", "0.081")], enabled=["CH"])
    result = calc.calculate(DIGITAL, 100, {"country": "CH"})
    assert result.unrounded_tax_cents == Decimal("8.1")
    assert result.tax_cents == 8


def test_identical_inputs_give_identical_results(calc: SalesTaxCalculator):
    first = calc.calculate(EBOOK, 1234, {"country": "ES", "postal_code": "28013"})
    second = calc.calculate(EBOOK, 1234, {"country": "ES", "postal_code": "28013"})
    assert first == second


def test_state_row_beats_country_row():
    calc = _calc([_row("DE", "0.19"), _row("DE", "0.10", state="BY")])
    assert calc.calculate(DIGITAL, 100, {"country": "DE", "state": "BY"}).tax_cents == 10
    assert calc.calculate(DIGITAL, 100, {"country": "DE"}).tax_cents == 19


def test_postal_code_row_beats_state_row():
    calc = _calc([
        _row("DE", "0.19"),
        _row("DE", "0.10", state="BY"),
        _row("DE", "0.05", zip_code="80331"),
    ])
    result = calc.calculate(DIGITAL, 100, {"country": "DE", "state": "BY", "postal_code": "80331"})
    assert result.tax_cents == 5


def test_unknown_country_is_zero_tax(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "ZZ"})
    assert result.tax_cents == 0
    assert result.rate_source is None


def test_known_country_without_rows_is_zero_tax():
    result = _calc().calculate(DIGITAL, 100, {"country": "FR"})
    assert result.tax_cents == 0


# ── E-publication rates ──────────────────────────────────────────────


def test_epublication_row_wins_even_at_zero():
    calc = _calc([
        _row("DE", "0.20", row_id="std"),
        _row("DE", "0.00", is_epublication_rate=True, row_id="epub"),
    ])
    result = calc.calculate(EBOOK, 100, {"country": "DE"})
    assert result.tax_cents == 0
    assert result.rate_source.row_id == "epub"


def test_epublication_without_epublication_row_is_not_taxed():
    calc = _calc([_row("DE", "0.19", row_id="de-std")])
    result = calc.calculate(EBOOK, 100, {"country": "DE"})
    assert result.tax_cents == 0
    assert result.rate_source is None


def test_standard_product_ignores_epublication_row(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "ES"})
    assert result.rate_source.row_id == "es-std"


def test_epublication_in_spain(calc: SalesTaxCalculator):
    result = calc.calculate(EBOOK, 100, {"country": "ES"})
    assert result.tax_cents == 4


# ── Year applicability ───────────────────────────────────────────────


@pytest.fixture
def singapore() -> SalesTaxCalculator:
    return _calc([
        _row("SG", "0.08", applicable_years={2023}),
        _row("SG", "0.09", applicable_years={2024}),
    ])


@pytest.mark.parametrize(
    "year, expected",
    [(2023, 8), (2024, 9), (2025, 9), (2030, 9)],
)
def test_singapore_rate_by_year(singapore: SalesTaxCalculator, year: int, expected: int):
    result = singapore.calculate(DIGITAL, 100, {"country": "SG"}, as_of=date(year, 3, 1))
    assert result.tax_cents == expected


def test_clock_supplies_year_when_not_given():
    rows = [
        _row("SG", "0.08", applicable_years={2023}),
        _row("SG", "0.09", applicable_years={2024}),
    ]
    assert _calc(rows, today=date(2023, 12, 31)).calculate(DIGITAL, 100, {"country": "SG"}).tax_cents == 8
    assert _calc(rows, today=date(2026, 1, 1)).calculate(DIGITAL, 100, {"country": "SG"}).tax_cents == 9


def test_future_only_row_does_not_apply():
    calc = _calc([_row("SG", "0.09", applicable_years={2030})])
    assert calc.calculate(DIGITAL, 100, {"country": "SG"}).tax_cents == 0


# ── Rollout gating ───────────────────────────────────────────────────


def test_gated_country_closed_is_zero_tax(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "IS"})
    assert result.tax_cents == 0
    assert result.rate_source is None


def test_gated_country_open_applies_row():
    calc = _calc([_row("IS", "0.24")], enabled=["IS"])
    assert calc.calculate(DIGITAL, 100, {"country": "IS"}).tax_cents == 24


def test_always_on_country_needs_no_switch(calc: SalesTaxCalculator):
    assert calc.calculate(DIGITAL, 100, {"country": "AU"}).tax_cents == 10


# ── Physical goods ───────────────────────────────────────────────────


def test_physical_goods_untaxed_in_digital_only_country():
    calc = _calc([_row("MX", "0.16")], enabled=["MX"])
    assert calc.calculate(PHYSICAL, 100, {"country": "MX"}).tax_cents == 0
    assert calc.calculate(DIGITAL, 100, {"country": "MX"}).tax_cents == 16


def test_row_covering_physical_goods_is_collected():
    calc = _calc([_row("MX", "0.16", covers_physical_goods=True)], enabled=["MX"])
    assert calc.calculate(PHYSICAL, 100, {"country": "MX"}).tax_cents == 16


def test_physical_goods_taxed_in_all_products_country():
    calc = _calc([_row("JP", "0.10")], enabled=["JP"])
    assert calc.calculate(PHYSICAL, 100, {"country": "JP"}).tax_cents == 10


# ── Seller-responsible rows ──────────────────────────────────────────


@pytest.fixture
def seller_rows() -> list[RateRow]:
    return [_row("DE", "0.19", is_seller_responsible=True, row_id="de-seller")]


def test_eu_physical_goods_left_to_seller(seller_rows):
    result = _calc(seller_rows).calculate(PHYSICAL, 100, {"country": "DE"})
    assert result.tax_cents == 0
    assert result.rate_source.row_id == "de-seller"


def test_eu_digital_goods_always_collected(seller_rows):
    result = _calc(seller_rows).calculate(DIGITAL, 100, {"country": "DE"})
    assert result.tax_cents == 19


def test_seller_opted_in_eu_collection(seller_rows):
    seller = SellerTaxProfile(collect_eu_vat=True)
    result = _calc(seller_rows).calculate(PHYSICAL, 100, {"country": "DE"}, seller=seller)
    assert result.tax_cents == 19
    assert result.total_cents == 119


def test_seller_opted_in_eu_collection_adds_tax_on_top(seller_rows):
    seller = SellerTaxProfile(collect_eu_vat=True)
    result = _calc(seller_rows).calculate(PHYSICAL, 119, {"country": "DE"}, seller=seller)
    # 119 * 0.19 = 22.61
    assert result.unrounded_tax_cents == Decimal("22.61")
    assert result.tax_cents == 23
    assert result.total_cents == 142


def test_platform_row_preferred_over_seller_row(seller_rows):
    calc = _calc(seller_rows + [_row("DE", "0.19", row_id="de-platform")])
    result = calc.calculate(PHYSICAL, 100, {"country": "DE"})
    assert result.tax_cents == 19
    assert result.rate_source.row_id == "de-platform"


def test_seller_responsible_row_outside_eu_is_not_collected():
    calc = _calc([_row("AU", "0.10", is_seller_responsible=True)])
    result = calc.calculate(DIGITAL, 100, {"country": "AU"})
    assert result.tax_cents == 0
    assert result.rate_source is not None


# ── Exemptions ───────────────────────────────────────────────────────


@pytest.mark.parametrize("postal_code", ["35001", "38001", "51001", "52001"])
def test_spanish_territories_outside_vat_area(calc: SalesTaxCalculator, postal_code: str):
    result = calc.calculate(DIGITAL, 100, {"country": "ES", "postal_code": postal_code})
    assert result.tax_cents == 0


def test_mainland_spain_is_taxed(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "ES", "postal_code": "28013"})
    assert result.tax_cents == 21


def test_disallowed_settlement_country_skips_everything(calc: SalesTaxCalculator, provider):
    seller = SellerTaxProfile(merchant_account_countries=frozenset({"BR"}))
    assert calc.calculate(DIGITAL, 100, {"country": "ES"}, seller=seller).tax_cents == 0
    assert calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": "98121"}, seller=seller).tax_cents == 0
    assert provider.calls == 0


def test_valid_eu_vat_id_is_reverse_charged(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "DE"}, buyer_business_tax_id="DE 123456789")
    assert result.tax_cents == 0
    assert result.has_business_tax_id_input is True
    assert result.business_tax_id == "DE123456789"
    assert result.rate_source is None


def test_invalid_eu_vat_id_is_taxed(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "DE"}, buyer_business_tax_id="DE123")
    assert result.tax_cents == 19
    assert result.has_business_tax_id_input is True
    assert result.business_tax_id is None


def test_valid_abn_is_reverse_charged(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "AU"}, buyer_business_tax_id="51 824 753 556")
    assert result.tax_cents == 0
    assert result.has_business_tax_id_input is True


# ── Business ID flag ─────────────────────────────────────────────────


def test_business_id_flag_set_without_id_where_ids_accepted(calc: SalesTaxCalculator):
    result = calc.calculate(DIGITAL, 100, {"country": "AU"})
    assert result.tax_cents == 10
    assert result.has_business_tax_id_input is True


def test_business_id_flag_clear_on_zero_tax_shortcuts(calc: SalesTaxCalculator):
    assert calc.calculate(DIGITAL, 0, {"country": "AU"}).has_business_tax_id_input is False
    assert calc.calculate(DIGITAL, 100, {"country": "ZZ"}).has_business_tax_id_input is False


# ── US via external provider ─────────────────────────────────────────


def test_us_sale_priced_by_provider(calc: SalesTaxCalculator, provider):
    result = calc.calculate(
        DIGITAL, 1000, {"country": "US", "postal_code": "98121"}, shipping_cents=100
    )
    # 1100 * 0.1025 = 112.75, rounded half up
    assert result.tax_cents == 113
    assert result.unrounded_tax_cents == Decimal("112.75")
    assert result.used_external_provider is True
    assert result.rate_source is None
    assert result.external_provider_breakdown.jurisdiction_city == "SEATTLE"
    assert result.combined_rate == Decimal("0.1025")
    assert provider.calls == 1


def test_us_order_sent_to_provider(calc: SalesTaxCalculator, provider):
    calc.calculate(DIGITAL, 1000, {"country": "US", "zip_code": "98121"}, shipping_cents=100)
    order = provider.orders[0]
    assert order.to_country == "US"
    assert order.to_state == "WA"
    assert order.to_zip == "98121"
    assert order.unit_price == Decimal("10")
    assert order.shipping == Decimal("1")
    assert order.product_tax_code == "31000"


def test_quantity_splits_unit_price(calc: SalesTaxCalculator, provider):
    calc.calculate(DIGITAL, 3000, {"country": "US", "postal_code": "98121"}, quantity=3)
    order = provider.orders[0]
    assert order.quantity == 3
    assert order.unit_price == Decimal("10")


def test_shipping_defaults_to_product_rate(calc: SalesTaxCalculator, provider):
    shipped = TaxableProduct(
        is_physical=True,
        native_type=NativeType.PHYSICAL,
        requires_shipping=True,
        shipping_rates_cents={"US": 250, "CA": 900},
    )
    calc.calculate(shipped, 2000, {"country": "US", "postal_code": "98121"}, quantity=2)
    assert provider.orders[0].shipping == Decimal("5")


def test_explicit_shipping_overrides_product_rate(calc: SalesTaxCalculator, provider):
    shipped = TaxableProduct(requires_shipping=True, shipping_rates_cents={"US": 250})
    calc.calculate(shipped, 1000, {"country": "US", "postal_code": "98121"}, shipping_cents=0)
    assert provider.orders[0].shipping == Decimal("0")


@pytest.mark.parametrize("postal_code", ["invalidzip", "1234", None])
def test_us_invalid_zip_makes_no_provider_call(calc: SalesTaxCalculator, provider, postal_code):
    result = calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": postal_code})
    assert result.tax_cents == 0
    assert provider.calls == 0


def test_us_without_nexus_makes_no_provider_call(calc: SalesTaxCalculator, provider):
    result = calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": "94107"})
    assert result.tax_cents == 0
    assert provider.calls == 0


def test_seller_nexus_regions_replace_defaults(calc: SalesTaxCalculator, provider):
    seller = SellerTaxProfile(nexus_regions=frozenset({"CA"}))
    calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": "94107"}, seller=seller)
    calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": "98121"}, seller=seller)
    assert provider.calls == 1
    assert provider.orders[0].to_state == "CA"


def test_provider_failure_propagates(make_provider):
    failing = make_provider(error=TaxProviderUnavailableError("timed out"))
    calc = _calc(provider=failing)
    with pytest.raises(TaxProviderUnavailableError):
        calc.calculate(DIGITAL, 1000, {"country": "US", "postal_code": "98121"})
    assert failing.calls == 1


def test_us_results_are_idempotent(calc: SalesTaxCalculator, provider):
    location = {"country": "US", "postal_code": "98121"}
    assert calc.calculate(DIGITAL, 1000, location) == calc.calculate(DIGITAL, 1000, location)
    assert provider.calls == 2


# ── Canada via external provider ─────────────────────────────────────


def test_ontario_sale(ontario_provider):
    calc = _calc(provider=ontario_provider)
    result = calc.calculate(DIGITAL, 1000, {"country": "CA", "state": "ON", "postal_code": "M5V 3L9"})
    assert result.tax_cents == 130
    assert result.external_provider_breakdown.gst_tax_rate == Decimal("0.05")
    assert result.external_provider_breakdown.pst_tax_rate == Decimal("0.08")
    assert result.is_quebec is False
    assert result.has_business_tax_id_input is False
    assert ontario_provider.orders[0].to_zip is None


def test_canada_malformed_postal_code_is_zero_tax(ontario_provider):
    calc = _calc(provider=ontario_provider)
    result = calc.calculate(DIGITAL, 1000, {"country": "CA", "state": "ON", "postal_code": "12345"})
    assert result.tax_cents == 0
    assert ontario_provider.calls == 0


def test_quebec_qst_id_is_exempt(quebec_provider):
    calc = _calc(provider=quebec_provider)
    result = calc.calculate(
        DIGITAL, 1000, {"country": "CA", "state": "QC"}, buyer_business_tax_id="1002092821TQ0001"
    )
    assert result.tax_cents == 0
    assert result.has_business_tax_id_input is True
    assert result.is_quebec is True
    assert quebec_provider.calls == 0


def test_quebec_facilitator_rules_override_qst_id(quebec_provider, registry):
    forced = registry.with_policy("CA", facilitator_overrides_business_id=True)
    calc = _calc(provider=quebec_provider, registry=forced)
    result = calc.calculate(
        DIGITAL, 1000, {"country": "CA", "state": "QC"}, buyer_business_tax_id="1002092821TQ0001"
    )
    assert result.tax_cents == 150
    assert result.has_business_tax_id_input is True
    assert result.business_tax_id == "1002092821TQ0001"
    assert quebec_provider.calls == 1


def test_quebec_without_id_flags_business_input(quebec_provider):
    calc = _calc(provider=quebec_provider)
    result = calc.calculate(DIGITAL, 1000, {"country": "CA", "state": "QC"})
    assert result.tax_cents == 150
    assert result.has_business_tax_id_input is True
    assert result.is_quebec is True


# ── Context flags ────────────────────────────────────────────────────


def test_context_flags_do_not_change_tax(calc: SalesTaxCalculator):
    plain = calc.calculate(DIGITAL, 100, {"country": "ES"})
    recommended = calc.calculate(
        DIGITAL, 100, {"country": "ES"}, context=ContextFlags(from_recommendation_surface=True)
    )
    assert plain == recommended


# ── Input validation ─────────────────────────────────────────────────


@pytest.mark.parametrize(
    "kwargs",
    [
        {"product": "ebook"},
        {"price_cents": -1},
        {"price_cents": 1.5},
        {"price_cents": True},
        {"price_cents": "100"},
        {"shipping_cents": -1},
        {"quantity": 0},
        {"buyer_location": "ES"},
        {"buyer_location": {}},
        {"buyer_location": {"country": "ESP"}},
        {"buyer_location": {"country": "ES", "postal_code": 12.5}},
        {"buyer_business_tax_id": 12345},
        {"seller": {"collect_eu_vat": True}},
        {"context": {"from_recommendation_surface": True}},
    ],
)
def test_malformed_input_raises(calc: SalesTaxCalculator, kwargs: dict):
    call = {"product": DIGITAL, "price_cents": 100, "buyer_location": {"country": "ES"}, **kwargs}
    with pytest.raises(InvalidInputError):
        calc.calculate(**call)


def test_invalid_location_raised_even_for_zero_price(calc: SalesTaxCalculator):
    with pytest.raises(InvalidInputError):
        calc.calculate(DIGITAL, 0, {"country": ""})
