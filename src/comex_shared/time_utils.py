"""
time_utils.py — Year-label parsing and Comex Stat period helpers.

Year labels in the trade series are strings: plain years ("2023") for
complete years and "2025 (até ago)" for the partially published current
year. Ordering always uses the leading four digits.

Usage:
    from comex_shared.time_utils import year_number, partial_year_label, period

    year_number("2025 (até ago)")    # 2025
    partial_year_label(2025, 8)      # "2025 (até ago)"
    period(2025, 8)                  # "2025-08"
"""

from __future__ import annotations

import re

import polars as pl

from comex_shared.constants import MONTH_ABBR_PT

_YEAR_RE = re.compile(r"^\s*(\d{4})")


def year_number(label: str | int | None) -> int | None:
    """Numeric year from a label, or None when the label has no leading year."""
    if label is None:
        return None
    if isinstance(label, int):
        return label
    m = _YEAR_RE.match(label)
    return int(m.group(1)) if m else None


def year_number_expr(col: str = "year") -> pl.Expr:
    """Polars expression equivalent of year_number() for a String column."""
    return (
        pl.col(col)
        .cast(pl.String)
        .str.strip_chars()
        .str.extract(r"^(\d{4})", 1)
        .cast(pl.Int32, strict=False)
    )


def period(year: int, month: int) -> str:
    """Comex Stat period string: period(2024, 3) → "2024-03"."""
    if not 1 <= month <= 12:
        raise ValueError(f"month out of range: {month}")
    return f"{year:04d}-{month:02d}"


def partial_year_label(year: int, month: int) -> str:
    """
    Label for a year whose data only runs through `month`.

    December is a complete year and gets the plain label.
    """
    if month >= 12:
        return str(year)
    abbr = MONTH_ABBR_PT.get(month, f"mês {month}")
    return f"{year} (até {abbr})"
