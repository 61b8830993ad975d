"""
constants.py — shared constants used across the pipeline.

Comex Stat metric names, trade flows and the Portuguese month
abbreviations used in partial-year labels live here so sources,
transforms and the CLI stay in sync.
"""

from __future__ import annotations

from typing import Final, Literal

Flow = Literal["export", "import"]

FLOWS: Final[tuple[Flow, ...]] = ("export", "import")

# ---------------------------------------------------------------------------
# Comex Stat metrics: API name -> raw column name
# ---------------------------------------------------------------------------
METRIC_COLUMNS: Final[dict[str, str]] = {
    "metricFOB": "metric_fob",
    "metricKG": "metric_kg",
    "metricStatistic": "metric_statistic",
    "metricFreight": "metric_freight",
    "metricInsurance": "metric_insurance",
    "metricCIF": "metric_cif",
}

EXPORT_METRICS: Final[list[str]] = ["metricFOB", "metricKG", "metricStatistic"]
IMPORT_METRICS: Final[list[str]] = [
    "metricFOB",
    "metricFreight",
    "metricInsurance",
    "metricCIF",
    "metricKG",
    "metricStatistic",
]

METRICS_BY_FLOW: Final[dict[Flow, list[str]]] = {
    "export": EXPORT_METRICS,
    "import": IMPORT_METRICS,
}

COUNTRY_METRICS: Final[list[str]] = ["metricFOB", "metricKG"]

# ---------------------------------------------------------------------------
# Month abbreviations (pt-BR) for "2025 (até ago)" style labels
# ---------------------------------------------------------------------------
MONTH_ABBR_PT: Final[dict[int, str]] = {
    1: "jan", 2: "fev", 3: "mar", 4: "abr", 5: "mai", 6: "jun",
    7: "jul", 8: "ago", 9: "set", 10: "out", 11: "nov", 12: "dez",
}

NCM_LENGTH: Final[int] = 8
