"""
External tax provider client.

US and Canadian rates come from an authoritative provider (TaxJar's
``/v2/taxes`` endpoint). The client makes exactly one bounded-timeout
request per call; any failure surfaces as ``TaxProviderUnavailableError``
and is never replaced with a guessed or cached rate.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, Protocol

import requests

from sales_tax.config import ProviderSettings
from sales_tax.errors import TaxProviderUnavailableError

logger = logging.getLogger(__name__)


def _rate(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


@dataclass(frozen=True)
class ProviderBreakdown:
    """Rate breakdown exactly as reported by the provider."""

    combined_tax_rate: Decimal
    state_tax_rate: Optional[Decimal] = None
    county_tax_rate: Optional[Decimal] = None
    city_tax_rate: Optional[Decimal] = None
    gst_tax_rate: Optional[Decimal] = None
    pst_tax_rate: Optional[Decimal] = None
    qst_tax_rate: Optional[Decimal] = None
    jurisdiction_state: Optional[str] = None
    jurisdiction_county: Optional[str] = None
    jurisdiction_city: Optional[str] = None
    taxable_amount: Optional[Decimal] = None  # dollars
    amount_to_collect: Optional[Decimal] = None  # dollars
    freight_taxable: bool = False

    @classmethod
    def from_response(cls, tax: dict[str, Any]) -> "ProviderBreakdown":
        """Build from the ``tax`` object of a provider response."""
        breakdown = tax.get("breakdown") or {}
        jurisdictions = tax.get("jurisdictions") or {}
        return cls(
            combined_tax_rate=Decimal(str(tax["rate"])),
            state_tax_rate=_rate(breakdown.get("state_tax_rate")),
            county_tax_rate=_rate(breakdown.get("county_tax_rate")),
            city_tax_rate=_rate(breakdown.get("city_tax_rate")),
            gst_tax_rate=_rate(breakdown.get("gst_tax_rate")),
            pst_tax_rate=_rate(breakdown.get("pst_tax_rate")),
            qst_tax_rate=_rate(breakdown.get("qst_tax_rate")),
            jurisdiction_state=jurisdictions.get("state"),
            jurisdiction_county=jurisdictions.get("county"),
            jurisdiction_city=jurisdictions.get("city"),
            taxable_amount=_rate(tax.get("taxable_amount")),
            amount_to_collect=_rate(tax.get("amount_to_collect")),
            freight_taxable=bool(tax.get("freight_taxable", False)),
        )


@dataclass(frozen=True)
class ProviderOrder:
    """One order to price with the provider. Amounts are in dollars."""

    to_country: str
    to_state: str
    unit_price: Decimal
    shipping: Decimal
    quantity: int = 1
    to_zip: Optional[str] = None
    product_tax_code: Optional[str] = None
    from_country: str = "US"
    from_state: str = "CA"
    from_zip: str = "94104"

    @property
    def amount(self) -> Decimal:
        return self.unit_price * self.quantity

    def to_payload(self) -> dict[str, Any]:
        line_item: dict[str, Any] = {
            "quantity": self.quantity,
            "unit_price": float(self.unit_price),
        }
        if self.product_tax_code:
            line_item["product_tax_code"] = self.product_tax_code

        payload: dict[str, Any] = {
            "from_country": self.from_country,
            "from_state": self.from_state,
            "from_zip": self.from_zip,
            "to_country": self.to_country,
            "to_state": self.to_state,
            "amount": float(self.amount),
            "shipping": float(self.shipping),
            "nexus_addresses": [
                {"country": self.to_country, "state": self.to_state}
            ],
            "line_items": [line_item],
        }
        if self.to_zip:
            payload["to_zip"] = self.to_zip
        return payload


class TaxProvider(Protocol):
    def tax_for_order(self, order: ProviderOrder) -> ProviderBreakdown:
        ...


class TaxJarProvider:
    """HTTP client for the TaxJar sales tax API."""

    def __init__(
        self,
        settings: Optional[ProviderSettings] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.settings = settings or ProviderSettings.from_env()
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": "sales-tax-engine/1.0",
            "Content-Type": "application/json",
        })
        if self.settings.api_token:
            self.session.headers["Authorization"] = (
                f"Bearer {self.settings.api_token}"
            )

    def tax_for_order(self, order: ProviderOrder) -> ProviderBreakdown:
        url = f"{self.settings.api_url.rstrip('/')}/taxes"
        logger.info(
            "Requesting provider rate for %s-%s", order.to_country, order.to_state
        )
        try:
            response = self.session.post(
                url, json=order.to_payload(), timeout=self.settings.timeout_seconds
            )
            response.raise_for_status()
            body = response.json()
        except requests.Timeout as e:
            logger.warning("Tax provider timed out after %ss", self.settings.timeout_seconds)
            raise TaxProviderUnavailableError("Tax provider timed out") from e
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            logger.warning("Tax provider returned HTTP %s", status)
            raise TaxProviderUnavailableError(
                f"Tax provider returned HTTP {status}", status_code=status
            ) from e
        except (requests.RequestException, ValueError) as e:
            logger.warning("Tax provider request failed: %s", e)
            raise TaxProviderUnavailableError(f"Tax provider request failed: {e}") from e

        try:
            return ProviderBreakdown.from_response(body["tax"])
        except (KeyError, TypeError, AttributeError, InvalidOperation) as e:
            logger.warning("Tax provider response could not be parsed: %s", e)
            raise TaxProviderUnavailableError(
                "Tax provider response is missing rate information"
            ) from e
