"""
transforms/trade.py — Merge export and import records into yearly trade rows.

Input frames follow RAW_SCHEMA (one or more rows per year and flow, as
returned by ComexStatSource.transform). Output follows YEARLY_SCHEMA:

  year | ncm_code | ncm_description | statistical_unit |
  export_fob | export_kg | export_statistic |
  import_fob | import_kg | import_statistic | import_cif | import_freight | import_insurance |
  balance_fob | balance_kg | balance_statistic |
  export_price_kg | import_price_kg | export_price_statistic | import_price_statistic

Rules:
  - years are the union of both flows; a missing flow counts as zero
  - balance_* = export_* - import_*
  - *_price_kg = fob / kg and *_price_statistic = fob / statistic,
    null when the denominator is zero

Usage:
    from comex_pipeline.transforms.trade import aggregate_yearly_trade

    yearly = aggregate_yearly_trade(exports_raw, imports_raw, product)
"""

from __future__ import annotations

import polars as pl
import structlog

from comex_shared.models import ProductMetadata
from comex_shared.schemas import COUNTRY_SCHEMA, RAW_SCHEMA, YEARLY_SCHEMA, empty_frame
from comex_pipeline.transforms.time_series import safe_divide, sort_by_year

log = structlog.get_logger(__name__)

EXPORT_FIELDS: dict[str, str] = {
    "metric_fob": "export_fob",
    "metric_kg": "export_kg",
    "metric_statistic": "export_statistic",
}

IMPORT_FIELDS: dict[str, str] = {
    "metric_fob": "import_fob",
    "metric_kg": "import_kg",
    "metric_statistic": "import_statistic",
    "metric_cif": "import_cif",
    "metric_freight": "import_freight",
    "metric_insurance": "import_insurance",
}


def _conform_raw(raw: pl.DataFrame | None) -> pl.DataFrame:
    """Project onto RAW_SCHEMA, adding absent metric columns as null."""
    if raw is None or raw.is_empty():
        return empty_frame(RAW_SCHEMA)
    return raw.select(
        [
            pl.col(name).cast(dtype, strict=False).alias(name)
            if name in raw.columns
            else pl.lit(None, dtype=dtype).alias(name)
            for name, dtype in RAW_SCHEMA.items()
        ]
    ).with_columns(pl.col("year").str.strip_chars())


def _per_year(raw: pl.DataFrame | None, fields: dict[str, str]) -> pl.DataFrame:
    return (
        _conform_raw(raw)
        .group_by("year", maintain_order=True)
        .agg([pl.col(src).sum().alias(dst) for src, dst in fields.items()])
    )


def aggregate_yearly_trade(
    exports: pl.DataFrame | None,
    imports: pl.DataFrame | None,
    product: ProductMetadata,
) -> pl.DataFrame:
    """
    Build one YEARLY_SCHEMA row per year present in either flow.

    Pure and deterministic: no I/O, inputs are not modified, output is
    sorted by numeric year.

    Args:
        exports: RAW_SCHEMA rows for the export flow.
        imports: RAW_SCHEMA rows for the import flow.
        product: Metadata copied verbatim onto every row.

    Returns:
        DataFrame with YEARLY_SCHEMA columns.
    """
    exp = _per_year(exports, EXPORT_FIELDS)
    imp = _per_year(imports, IMPORT_FIELDS)

    if exp.is_empty() and imp.is_empty():
        return empty_frame(YEARLY_SCHEMA)

    numeric_cols = [*EXPORT_FIELDS.values(), *IMPORT_FIELDS.values()]
    df = exp.join(imp, on="year", how="full", coalesce=True).with_columns(
        [pl.col(c).fill_null(0.0) for c in numeric_cols]
    )

    df = df.with_columns(
        (pl.col("export_fob") - pl.col("import_fob")).alias("balance_fob"),
        (pl.col("export_kg") - pl.col("import_kg")).alias("balance_kg"),
        (pl.col("export_statistic") - pl.col("import_statistic")).alias("balance_statistic"),
        safe_divide(pl.col("export_fob"), pl.col("export_kg")).alias("export_price_kg"),
        safe_divide(pl.col("import_fob"), pl.col("import_kg")).alias("import_price_kg"),
        safe_divide(pl.col("export_fob"), pl.col("export_statistic")).alias("export_price_statistic"),
        safe_divide(pl.col("import_fob"), pl.col("import_statistic")).alias("import_price_statistic"),
        pl.lit(product.ncm_code, dtype=pl.String).alias("ncm_code"),
        pl.lit(product.description, dtype=pl.String).alias("ncm_description"),
        pl.lit(product.statistical_unit, dtype=pl.String).alias("statistical_unit"),
    )

    result = sort_by_year(df).select(
        [pl.col(name).cast(dtype) for name, dtype in YEARLY_SCHEMA.items()]
    )
    log.debug(
        "yearly_trade_aggregated",
        ncm_code=product.ncm_code,
        years=len(result),
        export_only=len(exp.join(imp, on="year", how="anti")),
        import_only=len(imp.join(exp, on="year", how="anti")),
    )
    return result


def build_country_shares(raw: pl.DataFrame) -> pl.DataFrame:
    """
    Per-partner FOB / KG with each partner's share of the flow total.

    Args:
        raw: Frame with country, metric_fob, metric_kg (one flow, one year).

    Returns:
        COUNTRY_SCHEMA frame sorted by FOB descending. Shares are
        percentages, null when the flow total is zero.
    """
    if raw.is_empty():
        return empty_frame(COUNTRY_SCHEMA)

    df = (
        raw.filter(pl.col("country").is_not_null())
        .group_by("country", maintain_order=True)
        .agg(
            pl.col("metric_fob").fill_null(0.0).sum().alias("fob"),
            pl.col("metric_kg").fill_null(0.0).sum().alias("kg"),
        )
    )
    return (
        df.with_columns(
            safe_divide(pl.col("fob") * 100.0, pl.col("fob").sum()).alias("fob_share_pct"),
            safe_divide(pl.col("kg") * 100.0, pl.col("kg").sum()).alias("kg_share_pct"),
        )
        .sort("fob", descending=True, maintain_order=True)
        .select([pl.col(name).cast(dtype) for name, dtype in COUNTRY_SCHEMA.items()])
    )
