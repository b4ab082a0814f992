"""
Command-line interface for the Sales Tax Engine.

Provides subcommands for pricing a single sale, browsing the rate table
and listing the jurisdiction registry.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from sales_tax.calculator import SalesTaxCalculator
from sales_tax.config import ProviderSettings
from sales_tax.errors import TaxEngineError
from sales_tax.jurisdictions import JurisdictionRegistry
from sales_tax.products import NativeType, TaxableProduct
from sales_tax.rates import RateStore
from sales_tax.rollout import RolloutConfig

DEFAULT_RATES_PATH = Path(__file__).with_name("data") / "rates.csv"

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
    )


def _load_rates(path: Optional[str]) -> RateStore:
    rates_path = Path(path) if path else DEFAULT_RATES_PATH
    if not rates_path.exists():
        console.print(f"[red]File not found: {rates_path}[/red]")
        sys.exit(1)
    return RateStore.from_csv(rates_path)


def _rollout(enable: Optional[str]) -> RolloutConfig:
    rollout = RolloutConfig.from_env()
    if enable:
        rollout = rollout.enable(*enable.split(","))
    return rollout


def _cents(cents: int) -> str:
    return f"{cents / 100:,.2f}"


# -----------------------------------------------------------------------
# Subcommand: calculate
# -----------------------------------------------------------------------


def cmd_calculate(args: argparse.Namespace) -> None:
    """Calculate tax for a single sale."""
    calc = SalesTaxCalculator(
        rate_store=_load_rates(args.rates),
        rollout=_rollout(args.enable),
        provider_settings=ProviderSettings.from_env(),
    )
    product = TaxableProduct(
        is_physical=args.physical,
        is_epublication=args.epublication,
        native_type=NativeType(args.native_type),
        requires_shipping=args.physical,
    )
    location = {
        "country": args.country,
        "state": args.state,
        "postal_code": args.postal_code,
    }
    result = calc.calculate(
        product,
        args.price_cents,
        location,
        shipping_cents=args.shipping_cents,
        quantity=args.quantity,
        buyer_business_tax_id=args.tax_id,
    )

    rate = result.combined_rate
    source = "-"
    if result.used_external_provider:
        source = "External provider"
    elif result.rate_source is not None:
        source = result.rate_source.row_id or result.rate_source.country

    console.print(
        Panel(
            f"[bold]Country:[/bold] {args.country.upper()}\n"
            f"[bold]Price:[/bold] {_cents(result.price_cents)}\n"
            f"[bold]Tax:[/bold] {_cents(result.tax_cents)}\n"
            f"[bold]Unrounded Tax (cents):[/bold] {result.unrounded_tax_cents}\n"
            f"[bold]Rate:[/bold] {f'{float(rate):.3%}' if rate is not None else 'N/A'}\n"
            f"[bold]Total:[/bold] {_cents(result.total_cents)}\n"
            f"[bold]Rate Source:[/bold] {source}\n"
            f"[bold]Business ID Input:[/bold] {'Yes' if result.has_business_tax_id_input else 'No'}",
            title="Sales Tax Calculation",
            border_style="blue",
        )
    )

    breakdown = result.external_provider_breakdown
    if breakdown is not None:
        table = Table(title="Provider Breakdown", box=box.SIMPLE)
        table.add_column("Component")
        table.add_column("Rate", justify="right")
        for label, value in (
            ("State", breakdown.state_tax_rate),
            ("County", breakdown.county_tax_rate),
            ("City", breakdown.city_tax_rate),
            ("GST", breakdown.gst_tax_rate),
            ("PST", breakdown.pst_tax_rate),
            ("QST", breakdown.qst_tax_rate),
        ):
            if value is not None:
                table.add_row(label, f"{float(value):.3%}")
        console.print(table)


# -----------------------------------------------------------------------
# Subcommand: rates
# -----------------------------------------------------------------------


def cmd_rates(args: argparse.Namespace) -> None:
    """Display rate rows for one country or the whole table."""
    store = _load_rates(args.rates)

    if args.country:
        rows = store.rows_for_country(args.country)
        if not rows:
            console.print(f"[red]No rates for country: {args.country}[/red]")
            sys.exit(1)
    else:
        rows = list(store)

    table = Table(title="Jurisdiction Tax Rates", box=box.ROUNDED)
    table.add_column("Country", style="bold")
    table.add_column("State")
    table.add_column("Postal Code")
    table.add_column("Rate", justify="right")
    table.add_column("E-pub", justify="center")
    table.add_column("Seller", justify="center")
    table.add_column("Years")

    for row in rows:
        table.add_row(
            row.country,
            row.state or "-",
            row.zip_code or "-",
            row.rate_percent,
            "Y" if row.is_epublication_rate else "",
            "Y" if row.is_seller_responsible else "",
            ", ".join(str(y) for y in sorted(row.applicable_years)) or "all",
        )
    console.print(table)


# -----------------------------------------------------------------------
# Subcommand: jurisdictions
# -----------------------------------------------------------------------


def cmd_jurisdictions(args: argparse.Namespace) -> None:
    """List known jurisdictions and whether collection is switched on."""
    registry = JurisdictionRegistry.default()
    rollout = _rollout(args.enable)

    table = Table(title="Jurisdictions", box=box.ROUNDED)
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Tax")
    table.add_column("Family")
    table.add_column("Collecting", justify="center")
    table.add_column("Business ID")

    for policy in registry.all():
        if args.family and policy.family != args.family:
            continue
        open_ = rollout.is_open(policy)
        table.add_row(
            policy.code,
            policy.name,
            policy.tax_name,
            policy.family,
            "Y" if open_ else "",
            policy.business_id_kind or "-",
            style="" if open_ else "dim",
        )
    console.print(table)


# -----------------------------------------------------------------------
# Argument parser
# -----------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sales-tax",
        description="Sales Tax Engine - VAT, GST and US sales tax for single sales",
    )
    parser.add_argument(
        "--verbose", "-v", action="store_true", help="Log calculation stages"
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # calculate
    calc_p = subparsers.add_parser("calculate", help="Calculate tax on a sale")
    calc_p.add_argument("--price-cents", type=int, required=True, help="Price in cents")
    calc_p.add_argument("--country", required=True, help="Buyer country (ISO alpha-2)")
    calc_p.add_argument("--state", help="Buyer state or province")
    calc_p.add_argument("--postal-code", help="Buyer postal / ZIP code")
    calc_p.add_argument("--shipping-cents", type=int, default=0, help="Shipping in cents")
    calc_p.add_argument("--quantity", type=int, default=1, help="Quantity")
    calc_p.add_argument("--physical", action="store_true", help="Physical product")
    calc_p.add_argument("--epublication", action="store_true", help="E-publication")
    calc_p.add_argument(
        "--native-type",
        default=NativeType.DIGITAL.value,
        choices=[t.value for t in NativeType],
        help="Product type",
    )
    calc_p.add_argument("--tax-id", help="Buyer business tax ID")
    calc_p.add_argument("--rates", help="Rate table CSV (default: bundled table)")
    calc_p.add_argument("--enable", help="Comma-separated gated countries to switch on")
    calc_p.set_defaults(func=cmd_calculate)

    # rates
    rates_p = subparsers.add_parser("rates", help="View the rate table")
    rates_p.add_argument("--country", "-c", help="Country code to look up")
    rates_p.add_argument("--rates", help="Rate table CSV (default: bundled table)")
    rates_p.set_defaults(func=cmd_rates)

    # jurisdictions
    jur_p = subparsers.add_parser("jurisdictions", help="List known jurisdictions")
    jur_p.add_argument("--family", help="Only show one policy family")
    jur_p.add_argument("--enable", help="Comma-separated gated countries to switch on")
    jur_p.set_defaults(func=cmd_jurisdictions)

    return parser


def main(argv: Optional[list[str]] = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    _configure_logging(args.verbose)
    try:
        args.func(args)
    except TaxEngineError as e:
        console.print(f"[red]{e}[/red]")
        sys.exit(1)
