"""
models/nfe.py — Pydantic models for NF-e (tax invoice) derived rows
and the CGIM/DINTE organisational spreadsheet.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class InvoiceRecord(BaseModel):
    """One year of invoice-derived figures for one NCM."""

    model_config = ConfigDict(frozen=True)

    year: str
    ncm_code: str
    production_value: float | None = None
    production_qty: float | None = None
    export_value: float | None = None
    export_qty: float | None = None
    import_cif_usd: float | None = None
    import_qty: float | None = None
    domestic_sales_qty: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "InvoiceRecord":
        return cls(**row)


class ResolvedInvoiceRecord(InvoiceRecord):
    """InvoiceRecord whose domestic sales quantity is always present."""

    domestic_sales_qty: float  # type: ignore[assignment]


class SalesRow(BaseModel):
    model_config = ConfigDict(frozen=True)

    year: str
    total_sales_kg: float
    total_sales_pct_chg: float | None = None
    domestic_sales_kg: float
    domestic_sales_pct_chg: float | None = None
    export_kg: float
    export_pct_chg: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "SalesRow":
        return cls(**row)


class ConsumptionRow(BaseModel):
    """Apparent national consumption for one year."""

    model_config = ConfigDict(frozen=True)

    year: str
    domestic_sales_kg: float
    domestic_sales_pct_chg: float | None = None
    import_kg: float
    import_pct_chg: float | None = None
    apparent_consumption_kg: float
    apparent_consumption_pct_chg: float | None = None
    import_penetration: float | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "ConsumptionRow":
        return cls(**row)


class CgimNcmInfo(BaseModel):
    """Responsible department / sector classification for an NCM."""

    model_config = ConfigDict(frozen=True)

    ncm_code: str
    department: str | None = None
    general_coordination: str | None = None
    grouping: str | None = None
    sectors: str | None = None
    subsectors: str | None = None
    products: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "CgimNcmInfo":
        return cls(**row)


class EntityContact(BaseModel):
    """Industry association contact linked to an NCM."""

    model_config = ConfigDict(frozen=True)

    ncm_code: str
    sheet: str
    acronym: str | None = None
    entity: str | None = None
    leader_name: str | None = None
    position: str | None = None
    email: str | None = None
    phone: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "EntityContact":
        return cls(**row)
