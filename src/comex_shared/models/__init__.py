"""
comex_shared.models — Pydantic row models for every derived dataset.

The pipeline computes on polars DataFrames; these models are what a
presentation layer receives when it asks an AnalysisSession for rows.

All row models provide:
  .from_row(row: dict) -> Model
"""

from comex_shared.models.nfe import (
    CgimNcmInfo,
    ConsumptionRow,
    EntityContact,
    InvoiceRecord,
    ResolvedInvoiceRecord,
    SalesRow,
)
from comex_shared.models.trade import (
    CountryRow,
    LastUpdate,
    ProductMetadata,
    RawDirectionalRecord,
    ResumedTradeRow,
    VariationRow,
    YearlyTradeRow,
)

__all__ = [
    "LastUpdate",
    "ProductMetadata",
    "RawDirectionalRecord",
    "YearlyTradeRow",
    "ResumedTradeRow",
    "VariationRow",
    "CountryRow",
    "InvoiceRecord",
    "ResolvedInvoiceRecord",
    "SalesRow",
    "ConsumptionRow",
    "CgimNcmInfo",
    "EntityContact",
]
