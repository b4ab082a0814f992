"""
Jurisdiction policy registry.

Every country the engine knows about is described by a small, immutable
policy descriptor loaded from ``data/jurisdictions.yaml``. The calculator
asks the registry how to treat a country instead of branching on country
codes, so rolling out a new country is a data change.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import yaml

DEFAULT_REGISTRY_PATH = Path(__file__).with_name("data") / "jurisdictions.yaml"


class Rollout(Enum):
    ALWAYS_ON = "always_on"  # core markets, never gated
    GATED = "gated"  # needs an explicit rollout switch


@dataclass(frozen=True)
class JurisdictionPolicy:
    """How the engine treats sales into one country."""

    code: str
    name: str
    tax_name: str
    family: str
    rollout: Rollout = Rollout.GATED
    uses_external_provider: bool = False
    has_epublication_rate: bool = False
    taxes_physical_goods: bool = True
    marketplace_facilitator: bool = False
    business_id_kind: Optional[str] = None
    business_id_regions: tuple[str, ...] = ()
    reverse_charge: bool = False
    facilitator_overrides_business_id: bool = False
    requires_nexus: bool = False
    vat_exempt_postal_prefixes: tuple[str, ...] = ()

    @property
    def is_always_on(self) -> bool:
        return self.rollout is Rollout.ALWAYS_ON

    @property
    def digital_only(self) -> bool:
        return not self.taxes_physical_goods

    def accepts_business_id(self, state: Optional[str] = None) -> bool:
        """Whether a buyer in this country (and region) may enter a business tax ID."""
        if self.business_id_kind is None:
            return False
        if self.business_id_regions:
            return state is not None and state in self.business_id_regions
        return True


_TUPLE_FIELDS = ("business_id_regions", "vat_exempt_postal_prefixes")


def _build_policy(code: str, data: dict[str, Any], families: dict[str, dict]) -> JurisdictionPolicy:
    family = data.get("family")
    if family not in families:
        raise ValueError(f"Unknown jurisdiction family for {code}: {family!r}")

    merged: dict[str, Any] = {**families[family], **data}
    merged["code"] = code
    merged["rollout"] = Rollout(merged.get("rollout", Rollout.GATED.value))
    for name in _TUPLE_FIELDS:
        merged[name] = tuple(str(v).upper() for v in merged.get(name, ()))

    known = {f.name for f in dataclasses.fields(JurisdictionPolicy)}
    unknown = set(merged) - known
    if unknown:
        raise ValueError(f"Unknown policy keys for {code}: {sorted(unknown)}")
    return JurisdictionPolicy(**merged)


class JurisdictionRegistry:
    """
    Read-only lookup of jurisdiction policies keyed by ISO country code.

    Also carries the two pieces of platform-wide reference data that are
    not per-country: the default US nexus states and the merchant-account
    countries whose sellers never have tax collected.
    """

    def __init__(
        self,
        policies: Iterable[JurisdictionPolicy],
        default_nexus_states: Iterable[str] = (),
        disallowed_settlement_countries: Iterable[str] = (),
    ) -> None:
        self._policies: dict[str, JurisdictionPolicy] = {
            p.code: p for p in policies
        }
        self.default_nexus_states = frozenset(
            s.upper() for s in default_nexus_states
        )
        self.disallowed_settlement_countries = frozenset(
            c.upper() for c in disallowed_settlement_countries
        )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "JurisdictionRegistry":
        families = data.get("families", {})
        policies = [
            _build_policy(str(code).upper(), entry or {}, families)
            for code, entry in data.get("jurisdictions", {}).items()
        ]
        return cls(
            policies,
            default_nexus_states=data.get("us", {}).get("default_nexus_states", []),
            disallowed_settlement_countries=data.get("settlement", {}).get(
                "disallowed_merchant_account_countries", []
            ),
        )

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "JurisdictionRegistry":
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return cls.from_dict(data)

    @classmethod
    def default(cls) -> "JurisdictionRegistry":
        """The registry shipped with the package."""
        return cls.from_yaml(DEFAULT_REGISTRY_PATH)

    def __contains__(self, code: object) -> bool:
        return isinstance(code, str) and code.upper() in self._policies

    def __len__(self) -> int:
        return len(self._policies)

    def get(self, code: Optional[str]) -> Optional[JurisdictionPolicy]:
        if not code:
            return None
        return self._policies.get(code.upper())

    def is_always_on(self, code: str) -> bool:
        policy = self.get(code)
        return policy is not None and policy.is_always_on

    def all(self) -> list[JurisdictionPolicy]:
        """All policies sorted by country code."""
        return [self._policies[k] for k in sorted(self._policies)]

    def in_family(self, family: str) -> list[JurisdictionPolicy]:
        return [p for p in self.all() if p.family == family]

    def with_policy(self, code: str, **changes: Any) -> "JurisdictionRegistry":
        """Return a copy of the registry with one policy's fields replaced."""
        policy = self.get(code)
        if policy is None:
            raise KeyError(f"Unknown jurisdiction: {code}")
        updated = dataclasses.replace(policy, **changes)
        policies = [updated if p.code == policy.code else p for p in self.all()]
        return JurisdictionRegistry(
            policies,
            default_nexus_states=self.default_nexus_states,
            disallowed_settlement_countries=self.disallowed_settlement_countries,
        )
