"""
models/trade.py — Pydantic models for Comex Stat derived rows.

Rows are frozen: every pipeline stage builds new values instead of
mutating earlier ones. Ratio fields are Optional; None means the
denominator was zero or missing, which is not the same as 0.0.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class LastUpdate(BaseModel):
    """Freshest month published by Comex Stat."""

    model_config = ConfigDict(frozen=True)

    year: int
    month: int = Field(ge=1, le=12)
    updated: date | None = None


class ProductMetadata(BaseModel):
    """NCM description and statistical unit; display-only."""

    model_config = ConfigDict(frozen=True)

    ncm_code: str
    description: str | None = None
    statistical_unit: str | None = None


class RawDirectionalRecord(BaseModel):
    """One (year, flow) observation as returned by the general query."""

    model_config = ConfigDict(frozen=True)

    year: str
    flow: Literal["export", "import"]
    metric_fob: float | None = None
    metric_kg: float | None = None
    metric_statistic: float | None = None
    metric_freight: float | None = None
    metric_insurance: float | None = None
    metric_cif: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RawDirectionalRecord":
        return cls(**row)


class YearlyTradeRow(BaseModel):
    """One year of merged export/import figures with balances and prices."""

    model_config = ConfigDict(frozen=True)

    year: str
    ncm_code: str
    ncm_description: str | None = None
    statistical_unit: str | None = None

    export_fob: float = 0.0
    export_kg: float = 0.0
    export_statistic: float = 0.0
    import_fob: float = 0.0
    import_kg: float = 0.0
    import_statistic: float = 0.0
    import_cif: float = 0.0
    import_freight: float = 0.0
    import_insurance: float = 0.0

    balance_fob: float = 0.0
    balance_kg: float = 0.0
    balance_statistic: float = 0.0

    export_price_kg: float | None = None
    import_price_kg: float | None = None
    export_price_statistic: float | None = None
    import_price_statistic: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "YearlyTradeRow":
        return cls(**row)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump()


class ResumedTradeRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: str
    export_fob: float
    export_kg: float
    import_fob: float
    import_kg: float
    balance_fob: float
    balance_kg: float

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ResumedTradeRow":
        return cls(**row)


class VariationRow(BaseModel):
    """Single-direction snapshot with year-over-year % changes."""

    model_config = ConfigDict(frozen=True)

    year: str
    value: float | None = None
    value_pct_chg: float | None = None
    weight: float | None = None
    weight_pct_chg: float | None = None
    avg_price: float | None = None
    avg_price_pct_chg: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "VariationRow":
        return cls(**row)


class CountryRow(BaseModel):
    """Per-partner share of one flow in one year."""

    model_config = ConfigDict(frozen=True)

    country: str
    fob: float = 0.0
    kg: float = 0.0
    fob_share_pct: float | None = None
    kg_share_pct: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CountryRow":
        return cls(**row)
