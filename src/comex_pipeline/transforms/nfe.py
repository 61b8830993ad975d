"""
transforms/nfe.py — Sales and apparent-consumption series from NF-e records.

Input follows INVOICE_SCHEMA (see NfeWorkbookSource.transform). All
quantities are in the invoices' taxable unit, treated as kilograms.

  resolve_domestic_sales      fill domestic_sales_qty = production - export
  build_sales_series          total / domestic / export sales per year
  build_apparent_consumption  domestic sales + imports, import penetration

Usage:
    from comex_pipeline.transforms.nfe import (
        select_ncm,
        resolve_domestic_sales,
        build_sales_series,
        build_apparent_consumption,
    )

    resolved = resolve_domestic_sales(select_ncm(invoices, "84713012"))
    sales = build_sales_series(resolved)
    cna = build_apparent_consumption(resolved)
"""

from __future__ import annotations

import polars as pl
import structlog

from comex_shared.ncm import normalize_ncm
from comex_shared.schemas import CONSUMPTION_SCHEMA, INVOICE_SCHEMA, SALES_SCHEMA, empty_frame
from comex_pipeline.transforms.time_series import compute_period_over_period, safe_divide

log = structlog.get_logger(__name__)


def _conform_invoices(invoices: pl.DataFrame) -> pl.DataFrame:
    return invoices.select(
        [
            pl.col(name).cast(dtype, strict=False).alias(name)
            if name in invoices.columns
            else pl.lit(None, dtype=dtype).alias(name)
            for name, dtype in INVOICE_SCHEMA.items()
        ]
    )


def select_ncm(invoices: pl.DataFrame, ncm_code: str) -> pl.DataFrame:
    """Rows for one NCM; the code is normalized so "8471.30.12" matches "84713012"."""
    code = normalize_ncm(ncm_code)
    if code is None or invoices.is_empty():
        return empty_frame(INVOICE_SCHEMA)
    return _conform_invoices(invoices).filter(pl.col("ncm_code") == code)


def resolve_domestic_sales(invoices: pl.DataFrame) -> pl.DataFrame:
    """
    Guarantee domestic_sales_qty on every invoice row.

    Rows that already carry a value keep it. Otherwise the value is
    production_qty - export_qty (null operands count as 0), floored at 0:
    exports above reported production (stock draw-down, reporting lag)
    yield 0 rather than negative sales. Floored rows are logged.

    Length and row order are preserved.
    """
    if invoices.is_empty():
        return empty_frame(INVOICE_SCHEMA)

    df = _conform_invoices(invoices)
    missing = pl.col("domestic_sales_qty").is_null()
    derived = pl.col("production_qty").fill_null(0.0) - pl.col("export_qty").fill_null(0.0)

    clamped = df.filter(missing & (derived < 0))
    if not clamped.is_empty():
        log.warning(
            "domestic_sales_clamped",
            rows=len(clamped),
            years=clamped["year"].to_list(),
        )

    return df.with_columns(
        pl.when(missing)
        .then(pl.max_horizontal(derived, pl.lit(0.0)))
        .otherwise(pl.col("domestic_sales_qty"))
        .alias("domestic_sales_qty")
    )


def _yearly_totals(resolved: pl.DataFrame) -> pl.DataFrame:
    return (
        _conform_invoices(resolved)
        .group_by("year", maintain_order=True)
        .agg(
            pl.col("domestic_sales_qty").fill_null(0.0).sum().alias("domestic_sales_kg"),
            pl.col("export_qty").fill_null(0.0).sum().alias("export_kg"),
            pl.col("import_qty").fill_null(0.0).sum().alias("import_kg"),
        )
    )


def build_sales_series(resolved: pl.DataFrame) -> pl.DataFrame:
    """
    Yearly industry sales: total (domestic + export), domestic and export,
    each with year-over-year % change.

    Returns:
        SALES_SCHEMA frame sorted by year; empty when there are no records.
    """
    if resolved.is_empty():
        return empty_frame(SALES_SCHEMA)

    df = _yearly_totals(resolved).with_columns(
        (pl.col("domestic_sales_kg") + pl.col("export_kg")).alias("total_sales_kg")
    )
    df = compute_period_over_period(
        df,
        value_cols=["total_sales_kg", "domestic_sales_kg", "export_kg"],
    ).rename(
        {
            "total_sales_kg_pct_chg": "total_sales_pct_chg",
            "domestic_sales_kg_pct_chg": "domestic_sales_pct_chg",
            "export_kg_pct_chg": "export_pct_chg",
        }
    )
    return df.select([pl.col(name).cast(dtype) for name, dtype in SALES_SCHEMA.items()])


def build_apparent_consumption(resolved: pl.DataFrame) -> pl.DataFrame:
    """
    Yearly apparent national consumption (CNA).

        apparent_consumption_kg = domestic_sales_kg + import_kg
        import_penetration      = import_kg / apparent_consumption_kg

    Penetration is a ratio in [0, 1], null when consumption is zero.

    Returns:
        CONSUMPTION_SCHEMA frame sorted by year; empty when there are no records.
    """
    if resolved.is_empty():
        return empty_frame(CONSUMPTION_SCHEMA)

    df = _yearly_totals(resolved).with_columns(
        (pl.col("domestic_sales_kg") + pl.col("import_kg")).alias("apparent_consumption_kg")
    )
    df = compute_period_over_period(
        df,
        value_cols=["domestic_sales_kg", "import_kg", "apparent_consumption_kg"],
    ).rename(
        {
            "domestic_sales_kg_pct_chg": "domestic_sales_pct_chg",
            "import_kg_pct_chg": "import_pct_chg",
            "apparent_consumption_kg_pct_chg": "apparent_consumption_pct_chg",
        }
    )
    df = df.with_columns(
        safe_divide(pl.col("import_kg"), pl.col("apparent_consumption_kg")).alias(
            "import_penetration"
        )
    )
    return df.select([pl.col(name).cast(dtype) for name, dtype in CONSUMPTION_SCHEMA.items()])
