"""
Rate row selection for jurisdictions priced from the local rate store.

Scopes are tried from most to least specific (postal code, then state or
province, then country-wide). Within a scope the row for the sale's year
wins; failing that, the most recent earlier row still applies, since a
rate sticks until it is superseded.
"""

from __future__ import annotations

import logging
from typing import Iterator, Optional, Sequence

from sales_tax.location import BuyerLocation, Jurisdiction
from sales_tax.products import TaxableProduct
from sales_tax.rates import RateRow, RateStore

logger = logging.getLogger(__name__)


def select_for_year(rows: Sequence[RateRow], year: int) -> Optional[RateRow]:
    """
    Pick the row that applies in ``year`` from rows of a single scope.

    Explicit year matches beat open-ended rows; with neither, the row with
    the latest year before ``year`` applies. Rows only valid in later
    years are ignored. Platform-collected rows beat seller-responsible
    ones when both are otherwise eligible.
    """
    pool = [r for r in rows if year in r.applicable_years]
    if not pool:
        pool = [r for r in rows if r.applies_every_year]
    if not pool:
        prior = [r for r in rows if r.latest_year is not None and r.latest_year < year]
        if prior:
            newest = max(r.latest_year for r in prior)
            pool = [r for r in prior if r.latest_year == newest]
    if not pool:
        return None
    return sorted(pool, key=lambda r: r.is_seller_responsible)[0]


class DomesticRateResolver:
    """Finds the most specific applicable rate row for a non-US sale."""

    def __init__(self, store: RateStore) -> None:
        self.store = store

    def _scopes(
        self,
        country: str,
        state: Optional[str],
        postal_code: Optional[str],
        is_epublication_rate: bool,
    ) -> Iterator[list[RateRow]]:
        if postal_code:
            yield [
                r
                for r in self.store.rows_for_zip(country, postal_code, state)
                if r.is_epublication_rate == is_epublication_rate
            ]
        if state:
            yield self.store.rows_for(country, state, None, is_epublication_rate)
        yield self.store.rows_for(country, None, None, is_epublication_rate)

    def _search(
        self,
        jurisdiction: Jurisdiction,
        location: BuyerLocation,
        is_epublication_rate: bool,
        year: int,
    ) -> Optional[RateRow]:
        for rows in self._scopes(
            jurisdiction.country,
            jurisdiction.state,
            location.postal_code,
            is_epublication_rate,
        ):
            row = select_for_year(rows, year)
            if row is not None:
                return row
        return None

    def resolve(
        self,
        jurisdiction: Jurisdiction,
        location: BuyerLocation,
        product: TaxableProduct,
        year: int,
    ) -> Optional[RateRow]:
        policy = jurisdiction.policy
        if policy is None:
            return None

        # Countries with reduced e-publication rates price those products
        # from e-publication rows only.
        is_epublication_rate = product.is_epublication and policy.has_epublication_rate
        row = self._search(jurisdiction, location, is_epublication_rate, year)
        if row is None:
            logger.debug("No rate row for %s in %s", jurisdiction.region_key, year)
        return row
