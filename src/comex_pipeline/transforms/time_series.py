"""
transforms/time_series.py — Year-series assembly and year-over-year variation.

Works entirely on polars DataFrames keyed by a String "year" label. Labels
are ordered by their leading four digits, so "2025 (até ago)" sorts after
"2024".

Undefined ratios are null. A zero or null denominator never produces 0,
inf or an exception, and a genuine 0 % change stays 0.0.

Usage:
    from comex_pipeline.transforms.time_series import (
        assemble_series,
        resume_series,
        build_variation_summary,
    )

    series = assemble_series(historical_df, current_year_df)
    resumed = resume_series(series)
    exports = build_variation_summary(series, "export")
"""

from __future__ import annotations

import polars as pl
import structlog

from comex_shared.constants import FLOWS, Flow
from comex_shared.schemas import RESUMED_COLUMNS, VARIATION_SCHEMA, YEARLY_SCHEMA, empty_frame
from comex_shared.time_utils import partial_year_label, year_number_expr

log = structlog.get_logger(__name__)

_YEAR_NUM = "__year_num"


class DuplicateYearError(ValueError):
    """Two rows for the same numeric year reached the assembler."""

    def __init__(self, years: list[int]) -> None:
        super().__init__(
            f"duplicate years in series: {years}; historical and current ranges overlap"
        )
        self.years = years


# ---------------------------------------------------------------------------
# Ratio helpers
# ---------------------------------------------------------------------------


def safe_divide(numerator: pl.Expr, denominator: pl.Expr) -> pl.Expr:
    """numerator / denominator, or null when the denominator is zero or null."""
    return (
        pl.when(denominator.is_not_null() & (denominator != 0))
        .then(numerator / denominator)
        .otherwise(None)
    )


def pct_change_expr(col: str, periods: int = 1) -> pl.Expr:
    """
    Percent change of col relative to `periods` rows earlier.

    Null for the first `periods` rows and wherever the prior value is zero
    or null. Assumes the frame is already in chronological order.
    """
    prev = pl.col(col).shift(periods)
    return safe_divide((pl.col(col) - prev) * 100.0, prev)


def sort_by_year(df: pl.DataFrame, year_col: str = "year") -> pl.DataFrame:
    """Sort ascending by the numeric year of the label column."""
    return (
        df.with_columns(year_number_expr(year_col).alias(_YEAR_NUM))
        .sort(_YEAR_NUM)
        .drop(_YEAR_NUM)
    )


def compute_period_over_period(
    df: pl.DataFrame,
    *,
    value_cols: list[str],
    year_col: str = "year",
    periods: int = 1,
    suffix: str = "_pct_chg",
) -> pl.DataFrame:
    """
    Add a percent change column for each of value_cols.

    Args:
        df:          Input DataFrame, one row per year.
        value_cols:  Numeric columns to compute change on.
        year_col:    Year label column used for ordering.
        periods:     Rows to shift (default 1 = year over year).
        suffix:      Appended to each value column name for the output.

    Returns:
        DataFrame sorted by year with "{col}{suffix}" columns appended.
    """
    return sort_by_year(df, year_col).with_columns(
        [pct_change_expr(col, periods).alias(f"{col}{suffix}") for col in value_cols]
    )


# ---------------------------------------------------------------------------
# Series assembly
# ---------------------------------------------------------------------------


def assemble_series(
    historical: pl.DataFrame,
    current: pl.DataFrame | None = None,
) -> pl.DataFrame:
    """
    Concatenate complete years with the partial current year and sort.

    Args:
        historical: Yearly rows for complete years.
        current:    Yearly row(s) for the partially published year.

    Returns:
        One frame ordered by ascending numeric year.

    Raises:
        DuplicateYearError: the two segments share a year.
        ValueError:         a year label has no leading four-digit year.
    """
    frames = [f for f in (historical, current) if f is not None and not f.is_empty()]
    if not frames:
        return empty_frame(YEARLY_SCHEMA)

    combined = pl.concat(frames, how="diagonal_relaxed").with_columns(
        year_number_expr("year").alias(_YEAR_NUM)
    )

    bad_labels = combined.filter(pl.col(_YEAR_NUM).is_null())["year"].to_list()
    if bad_labels:
        raise ValueError(f"unparseable year labels: {bad_labels}")

    duplicated = (
        combined.filter(pl.col(_YEAR_NUM).is_duplicated())[_YEAR_NUM]
        .unique()
        .sort()
        .to_list()
    )
    if duplicated:
        log.error("duplicate_years_detected", years=duplicated)
        raise DuplicateYearError(duplicated)

    result = combined.sort(_YEAR_NUM).drop(_YEAR_NUM)
    log.debug(
        "series_assembled",
        rows=len(result),
        first_year=result["year"][0],
        last_year=result["year"][-1],
    )
    return result


def label_partial_year(df: pl.DataFrame, year: int, month: int) -> pl.DataFrame:
    """Relabel rows of `year` as partial, e.g. "2025" → "2025 (até ago)"."""
    if df.is_empty():
        return df
    return df.with_columns(
        pl.when(year_number_expr("year") == year)
        .then(pl.lit(partial_year_label(year, month)))
        .otherwise(pl.col("year"))
        .alias("year")
    )


def resume_series(series: pl.DataFrame) -> pl.DataFrame:
    """Reduced view: year, FOB and KG per direction, and both balances."""
    if series.is_empty():
        return empty_frame({c: YEARLY_SCHEMA[c] for c in RESUMED_COLUMNS})
    return series.select(RESUMED_COLUMNS)


def chart_window(series: pl.DataFrame, since_year: int) -> pl.DataFrame:
    """Rows from since_year onward, used for the annual charts."""
    return series.filter(year_number_expr("year") >= since_year)


# ---------------------------------------------------------------------------
# Variation summary
# ---------------------------------------------------------------------------


def build_variation_summary(series: pl.DataFrame, direction: Flow) -> pl.DataFrame:
    """
    Year-over-year variation of FOB value, KG weight and FOB/KG price
    for one direction.

    The first year has null variation for every metric; so does any year
    whose prior value is zero or null.

    Args:
        series:    Assembled yearly series (YEARLY_SCHEMA).
        direction: "export" or "import".

    Returns:
        DataFrame with VARIATION_SCHEMA columns.
    """
    if direction not in FLOWS:
        raise ValueError(f"direction must be one of {FLOWS}, got {direction!r}")
    if series.is_empty():
        return empty_frame(VARIATION_SCHEMA)

    snapshot = series.select(
        pl.col("year"),
        pl.col(f"{direction}_fob").alias("value"),
        pl.col(f"{direction}_kg").alias("weight"),
        pl.col(f"{direction}_price_kg").alias("avg_price"),
    )
    df = compute_period_over_period(snapshot, value_cols=["value", "weight", "avg_price"])
    return df.select(
        [pl.col(name).cast(dtype) for name, dtype in VARIATION_SCHEMA.items()]
    )
