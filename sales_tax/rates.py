"""
Jurisdiction tax rate store.

A read-only, queryable snapshot of rate rows keyed by country, state and
postal code. Rows are maintained by an administrative collaborator and
handed to the engine as records or a CSV export; the engine never mutates
them.

CSV columns: country, state, zip_code, combined_rate, is_seller_responsible,
is_epublication_rate, applicable_years, covers_physical_goods, row_id.
``applicable_years`` is a ``;``-separated list (blank = every year).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import IntEnum
from pathlib import Path
from typing import Any, Iterable, Optional, Union

import pandas as pd

from sales_tax.errors import InvalidInputError


class Scope(IntEnum):
    """Rate scope; higher value is more specific."""

    COUNTRY = 1
    STATE = 2
    ZIP = 3


@dataclass(frozen=True)
class RateRow:
    """A single rate entry for a jurisdiction."""

    country: str
    combined_rate: Decimal
    state: Optional[str] = None  # None = country-wide
    zip_code: Optional[str] = None  # None = broader than a postal code
    is_seller_responsible: bool = False
    is_epublication_rate: bool = False
    applicable_years: frozenset[int] = field(default_factory=frozenset)  # empty = always
    covers_physical_goods: bool = False
    row_id: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "country", self.country.upper())
        object.__setattr__(self, "combined_rate", Decimal(str(self.combined_rate)))
        if self.state is not None:
            object.__setattr__(self, "state", self.state.upper())
        if self.zip_code is not None:
            object.__setattr__(self, "zip_code", self.zip_code.strip().upper())
        object.__setattr__(
            self, "applicable_years", frozenset(int(y) for y in self.applicable_years)
        )

    @property
    def scope(self) -> Scope:
        if self.zip_code is not None:
            return Scope.ZIP
        if self.state is not None:
            return Scope.STATE
        return Scope.COUNTRY

    @property
    def applies_every_year(self) -> bool:
        return not self.applicable_years

    @property
    def latest_year(self) -> Optional[int]:
        return max(self.applicable_years) if self.applicable_years else None

    def applies_in(self, year: int) -> bool:
        return self.applies_every_year or year in self.applicable_years

    @property
    def rate_percent(self) -> str:
        return f"{float(self.combined_rate):.3%}"


def _clean(value: Any) -> Any:
    """Map pandas missing values and blank strings to None."""
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _as_bool(value: Any) -> bool:
    value = _clean(value)
    if value is None:
        return False
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "t", "yes", "y")
    return bool(value)


def _as_years(value: Any) -> frozenset[int]:
    value = _clean(value)
    if value is None:
        return frozenset()
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(int(y) for y in value)
    if isinstance(value, (int, float)):
        return frozenset({int(value)})
    return frozenset(int(y) for y in str(value).split(";") if y.strip())


def row_from_record(record: dict[str, Any]) -> RateRow:
    """Build a RateRow from a loosely typed record (dict or CSV row)."""
    state = _clean(record.get("state"))
    zip_code = _clean(record.get("zip_code"))
    row_id = _clean(record.get("row_id"))
    return RateRow(
        country=str(record["country"]).strip(),
        combined_rate=Decimal(str(record["combined_rate"])),
        state=str(state).strip() if state is not None else None,
        zip_code=str(zip_code).strip() if zip_code is not None else None,
        is_seller_responsible=_as_bool(record.get("is_seller_responsible")),
        is_epublication_rate=_as_bool(record.get("is_epublication_rate")),
        applicable_years=_as_years(record.get("applicable_years")),
        covers_physical_goods=_as_bool(record.get("covers_physical_goods")),
        row_id=str(row_id) if row_id is not None else None,
    )


class RateStore:
    """
    Queryable snapshot of jurisdiction rate rows.

    Lookup is by exact (country, state, zip_code) scope; choosing between
    scopes and years is the domestic resolver's job.
    """

    def __init__(self, rows: Iterable[RateRow] = ()) -> None:
        self._rows: tuple[RateRow, ...] = tuple(rows)
        self._by_country: dict[str, list[RateRow]] = {}
        for row in self._rows:
            self._by_country.setdefault(row.country, []).append(row)

    @classmethod
    def from_rows(cls, rows: Iterable[RateRow]) -> "RateStore":
        return cls(rows)

    @classmethod
    def from_records(cls, records: Iterable[dict[str, Any]]) -> "RateStore":
        return cls(row_from_record(r) for r in records)

    @classmethod
    def from_csv(cls, path: Union[str, Path]) -> "RateStore":
        """Load a rate table export. Codes are read as strings so ZIPs keep leading zeros."""
        frame = pd.read_csv(
            path,
            dtype={
                "country": str,
                "state": str,
                "zip_code": str,
                "applicable_years": str,
                "row_id": str,
            },
            keep_default_na=False,
            na_values=[""],
        )
        missing = {"country", "combined_rate"} - set(frame.columns)
        if missing:
            raise InvalidInputError(f"Rate table is missing columns: {sorted(missing)}")
        return cls.from_records(frame.to_dict(orient="records"))

    def __len__(self) -> int:
        return len(self._rows)

    def __iter__(self):
        return iter(self._rows)

    def countries(self) -> list[str]:
        return sorted(self._by_country)

    def rows_for_country(self, country: str) -> list[RateRow]:
        return list(self._by_country.get(country.upper(), []))

    def rows_for(
        self,
        country: str,
        state: Optional[str] = None,
        zip_code: Optional[str] = None,
        is_epublication_rate: Optional[bool] = None,
    ) -> list[RateRow]:
        """
        Rows at exactly this scope.

        ``state``/``zip_code`` of None match only rows that leave them
        unset. ``is_epublication_rate`` of None matches both kinds.
        """
        state = state.upper() if state else None
        zip_code = zip_code.strip().upper() if zip_code else None
        return [
            row
            for row in self._by_country.get(country.upper(), [])
            if row.state == state
            and row.zip_code == zip_code
            and (
                is_epublication_rate is None
                or row.is_epublication_rate == is_epublication_rate
            )
        ]

    def rows_for_zip(
        self, country: str, zip_code: str, state: Optional[str] = None
    ) -> list[RateRow]:
        """Postal-code rows, whether or not they also name the state."""
        state = state.upper() if state else None
        zip_code = zip_code.strip().upper()
        return [
            row
            for row in self._by_country.get(country.upper(), [])
            if row.zip_code == zip_code and row.state in (None, state)
        ]
