"""
tests/test_shared/test_models.py — Tests for the frozen row models.
"""

from __future__ import annotations

import polars as pl
import pytest
from pydantic import ValidationError

from comex_shared.models import (
    LastUpdate,
    RawDirectionalRecord,
    ResolvedInvoiceRecord,
    VariationRow,
    YearlyTradeRow,
)


class TestRowModels:
    def test_raw_record_from_frame_row(self, raw_frame):
        df = raw_frame("import", {"year": "2023", "metric_fob": 400.0, "metric_cif": 420.0})
        record = RawDirectionalRecord.from_row(df.row(0, named=True))
        assert record.flow == "import"
        assert record.metric_cif == 420.0
        assert record.metric_freight is None

    def test_raw_record_rejects_unknown_flow(self):
        with pytest.raises(ValidationError):
            RawDirectionalRecord(year="2023", flow="transit")

    def test_yearly_row_keeps_undefined_price(self):
        row = YearlyTradeRow(year="2023", ncm_code="84713012", export_fob=10.0)
        assert row.export_price_kg is None
        assert row.to_dict()["export_price_kg"] is None

    def test_frozen(self):
        row = VariationRow(year="2023", value=1.0)
        with pytest.raises(ValidationError):
            row.value = 2.0  # type: ignore[misc]

    def test_resolved_invoice_requires_domestic_sales(self):
        with pytest.raises(ValidationError):
            ResolvedInvoiceRecord(year="2023", ncm_code="84713012", domestic_sales_qty=None)

    def test_last_update_month_range(self):
        with pytest.raises(ValidationError):
            LastUpdate(year=2025, month=13)

    def test_variation_rows_from_frame(self):
        df = pl.DataFrame({
            "year": ["2020", "2021"],
            "value": [100.0, 150.0],
            "value_pct_chg": [None, 50.0],
            "weight": [1.0, 1.0],
            "weight_pct_chg": [None, 0.0],
            "avg_price": [100.0, 150.0],
            "avg_price_pct_chg": [None, 50.0],
        })
        rows = [VariationRow.from_row(r) for r in df.iter_rows(named=True)]
        assert rows[0].value_pct_chg is None
        assert rows[1].weight_pct_chg == 0.0
