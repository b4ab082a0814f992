"""
Engine configuration read from the environment.

Rollout switches live in ``sales_tax.rollout``; this module covers the
external tax provider connection and the platform's origin address.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from sales_tax.errors import InvalidInputError

DEFAULT_PROVIDER_URL = "https://api.taxjar.com/v2"
DEFAULT_TIMEOUT_SECONDS = 5.0


@dataclass(frozen=True)
class ProviderSettings:
    """Connection settings for the external tax provider."""

    api_url: str = DEFAULT_PROVIDER_URL
    api_token: Optional[str] = None
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    # Address the platform ships / sells from
    origin_country: str = "US"
    origin_state: str = "CA"
    origin_zip: str = "94104"

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    @classmethod
    def from_env(cls, environ: Optional[dict] = None) -> "ProviderSettings":
        env = os.environ if environ is None else environ
        raw_timeout = env.get("SALES_TAX_PROVIDER_TIMEOUT")
        timeout = DEFAULT_TIMEOUT_SECONDS
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError as e:
                raise InvalidInputError(
                    f"SALES_TAX_PROVIDER_TIMEOUT should be a number, got {raw_timeout!r}"
                ) from e
            if timeout <= 0:
                raise InvalidInputError("SALES_TAX_PROVIDER_TIMEOUT should be positive")

        return cls(
            api_url=env.get("SALES_TAX_PROVIDER_URL", DEFAULT_PROVIDER_URL),
            api_token=env.get("SALES_TAX_PROVIDER_TOKEN") or None,
            timeout_seconds=timeout,
            origin_country=env.get("SALES_TAX_ORIGIN_COUNTRY", "US"),
            origin_state=env.get("SALES_TAX_ORIGIN_STATE", "CA"),
            origin_zip=env.get("SALES_TAX_ORIGIN_ZIP", "94104"),
        )
