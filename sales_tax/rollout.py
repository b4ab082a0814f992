"""
Per-country rollout switches.

Countries outside the always-on set only have tax collected once their
switch is on. Rate rows may be seeded long before that; a closed gate
means zero tax regardless of what the rate store holds.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

import yaml

from sales_tax.jurisdictions import JurisdictionPolicy

ENABLED_COUNTRIES_ENV = "SALES_TAX_ENABLED_COUNTRIES"


@dataclass(frozen=True)
class RolloutConfig:
    """Explicit set of gated countries that are switched on."""

    enabled_countries: frozenset[str] = field(default_factory=frozenset)

    @classmethod
    def from_countries(cls, countries: Iterable[str]) -> "RolloutConfig":
        return cls(
            enabled_countries=frozenset(
                c.strip().upper() for c in countries if c and c.strip()
            )
        )

    @classmethod
    def from_env(
        cls, var: str = ENABLED_COUNTRIES_ENV, environ: Optional[dict] = None
    ) -> "RolloutConfig":
        """Read a comma-separated country list, e.g. ``IS,JP,MX``."""
        env = os.environ if environ is None else environ
        return cls.from_countries(env.get(var, "").split(","))

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "RolloutConfig":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_countries(str(c) for c in data.get("enabled_countries", []))

    def is_enabled(self, country_code: str) -> bool:
        return country_code.upper() in self.enabled_countries

    def is_open(self, policy: JurisdictionPolicy) -> bool:
        """Always-on countries pass; gated ones need their switch."""
        return policy.is_always_on or self.is_enabled(policy.code)

    def enable(self, *countries: str) -> "RolloutConfig":
        return RolloutConfig.from_countries([*self.enabled_countries, *countries])
