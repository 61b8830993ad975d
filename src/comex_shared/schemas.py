"""
schemas.py — polars schemas for every DataFrame passed between stages.

Each schema mirrors a row model in comex_shared.models. Empty results are
built with empty_frame(SCHEMA) so downstream code never sees a frame with
missing columns.
"""

from __future__ import annotations

from typing import Final

import polars as pl

RAW_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    "flow": pl.String(),
    "metric_fob": pl.Float64(),
    "metric_kg": pl.Float64(),
    "metric_statistic": pl.Float64(),
    "metric_freight": pl.Float64(),
    "metric_insurance": pl.Float64(),
    "metric_cif": pl.Float64(),
}

METADATA_SCHEMA: Final[dict[str, pl.DataType]] = {
    "ncm_code": pl.String(),
    "ncm_description": pl.String(),
    "statistical_unit": pl.String(),
}

YEARLY_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    **METADATA_SCHEMA,
    "export_fob": pl.Float64(),
    "export_kg": pl.Float64(),
    "export_statistic": pl.Float64(),
    "import_fob": pl.Float64(),
    "import_kg": pl.Float64(),
    "import_statistic": pl.Float64(),
    "import_cif": pl.Float64(),
    "import_freight": pl.Float64(),
    "import_insurance": pl.Float64(),
    "balance_fob": pl.Float64(),
    "balance_kg": pl.Float64(),
    "balance_statistic": pl.Float64(),
    "export_price_kg": pl.Float64(),
    "import_price_kg": pl.Float64(),
    "export_price_statistic": pl.Float64(),
    "import_price_statistic": pl.Float64(),
}

RESUMED_COLUMNS: Final[list[str]] = [
    "year",
    "export_fob",
    "export_kg",
    "import_fob",
    "import_kg",
    "balance_fob",
    "balance_kg",
]

VARIATION_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    "value": pl.Float64(),
    "value_pct_chg": pl.Float64(),
    "weight": pl.Float64(),
    "weight_pct_chg": pl.Float64(),
    "avg_price": pl.Float64(),
    "avg_price_pct_chg": pl.Float64(),
}

COUNTRY_SCHEMA: Final[dict[str, pl.DataType]] = {
    "country": pl.String(),
    "fob": pl.Float64(),
    "kg": pl.Float64(),
    "fob_share_pct": pl.Float64(),
    "kg_share_pct": pl.Float64(),
}

INVOICE_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    "ncm_code": pl.String(),
    "production_value": pl.Float64(),
    "production_qty": pl.Float64(),
    "export_value": pl.Float64(),
    "export_qty": pl.Float64(),
    "import_cif_usd": pl.Float64(),
    "import_qty": pl.Float64(),
    "domestic_sales_qty": pl.Float64(),
}

SALES_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    "total_sales_kg": pl.Float64(),
    "total_sales_pct_chg": pl.Float64(),
    "domestic_sales_kg": pl.Float64(),
    "domestic_sales_pct_chg": pl.Float64(),
    "export_kg": pl.Float64(),
    "export_pct_chg": pl.Float64(),
}

CONSUMPTION_SCHEMA: Final[dict[str, pl.DataType]] = {
    "year": pl.String(),
    "domestic_sales_kg": pl.Float64(),
    "domestic_sales_pct_chg": pl.Float64(),
    "import_kg": pl.Float64(),
    "import_pct_chg": pl.Float64(),
    "apparent_consumption_kg": pl.Float64(),
    "apparent_consumption_pct_chg": pl.Float64(),
    "import_penetration": pl.Float64(),
}

CGIM_SCHEMA: Final[dict[str, pl.DataType]] = {
    "ncm_code": pl.String(),
    "department": pl.String(),
    "general_coordination": pl.String(),
    "grouping": pl.String(),
    "sectors": pl.String(),
    "subsectors": pl.String(),
    "products": pl.String(),
}

CONTACT_SCHEMA: Final[dict[str, pl.DataType]] = {
    "ncm_code": pl.String(),
    "sheet": pl.String(),
    "acronym": pl.String(),
    "entity": pl.String(),
    "leader_name": pl.String(),
    "position": pl.String(),
    "email": pl.String(),
    "phone": pl.String(),
}


def empty_frame(schema: dict[str, pl.DataType]) -> pl.DataFrame:
    """Zero-row DataFrame with the given schema."""
    return pl.DataFrame(schema=schema)
