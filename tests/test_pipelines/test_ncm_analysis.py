"""
tests/test_pipelines/test_ncm_analysis.py — Tests for the NCM analysis orchestrator.

The Comex Stat client is replaced by an in-memory fake; workbook reads are
patched to return the all-String frames extract() would produce.
"""

from __future__ import annotations

import asyncio
import dataclasses
import json
from typing import Any

import httpx
import polars as pl
import pytest
import structlog

from comex_shared.config import settings
from comex_shared.models import LastUpdate, ProductMetadata, VariationRow, YearlyTradeRow
from comex_shared.schemas import RAW_SCHEMA
from comex_pipeline.pipelines.ncm_analysis import AnalysisSession, run
from comex_pipeline.sources.base import UpstreamParseError
from comex_pipeline.sources.comexstat import ComexStatSource
from comex_pipeline.sources.spreadsheets import CgimWorkbookSource, NfeWorkbookSource
from comex_pipeline.transforms.time_series import DuplicateYearError

NCM = "84713012"


def _raw(flow: str, rows: list[tuple[str, float, float]]) -> pl.DataFrame:
    return pl.DataFrame(
        [{"year": y, "flow": flow, "metric_fob": fob, "metric_kg": kg} for y, fob, kg in rows],
        schema=RAW_SCHEMA,
    )


class FakeComexStat:
    """Stands in for ComexStatSource; records every general query."""

    name = "FakeComexStat"

    def __init__(
        self,
        *,
        last: LastUpdate = LastUpdate(year=2025, month=8),
        historical: dict[str, list[tuple[str, float, float]]] | None = None,
        current: dict[str, list[tuple[str, float, float]]] | None = None,
        fail: set[str] | None = None,
    ) -> None:
        self.last = last
        self.historical = historical or {
            "export": [("2023", 1000.0, 100.0), ("2024", 1100.0, 110.0)],
            "import": [("2023", 500.0, 50.0), ("2024", 400.0, 40.0)],
        }
        self.current = current or {
            "export": [("2025", 600.0, 50.0)],
            "import": [("2025", 300.0, 30.0)],
        }
        self.fail = fail or set()
        self.queries: list[dict[str, Any]] = []
        self.country_years: list[int] = []

    async def get_metadata(self) -> dict[str, Any]:
        return {"source_name": self.name}

    async def fetch_last_update(self) -> LastUpdate:
        if "last_update" in self.fail:
            raise httpx.ConnectError("connection refused")
        return self.last

    async def fetch_product_metadata(self, ncm: str) -> ProductMetadata:
        return ProductMetadata(ncm_code=ncm, description="Notebooks", statistical_unit="UNIDADE")

    async def run(self, *, flow: str, ncm: str, period_from: str, period_to: str) -> pl.DataFrame:
        self.queries.append(
            {"flow": flow, "ncm": ncm, "period_from": period_from, "period_to": period_to}
        )
        if "general" in self.fail:
            raise UpstreamParseError(self.name, "unexpected general payload")
        rows = self.current if period_from.startswith(str(self.last.year)) else self.historical
        return _raw(flow, rows.get(flow, []))

    async def fetch_country_breakdown(self, ncm: str, flow: str, year: int) -> pl.DataFrame:
        self.country_years.append(year)
        if "country" in self.fail:
            request = httpx.Request("POST", "https://comex.test/general")
            raise httpx.HTTPStatusError(
                "server error", request=request, response=httpx.Response(500, request=request)
            )
        return pl.DataFrame({
            "country": ["Argentina", "Chile"],
            "metric_fob": [75.0, 25.0],
            "metric_kg": [1.0, 1.0],
        })


class TestTradeBranch:
    @pytest.mark.asyncio
    async def test_full_session(self):
        fake = FakeComexStat()
        session = await run(NCM, source=fake)

        assert session.errors == ()
        assert session.ncm_code == NCM
        assert session.last_update == LastUpdate(year=2025, month=8)
        assert session.series["year"].to_list() == ["2023", "2024", "2025 (até ago)"]
        assert session.series["balance_fob"].to_list() == [500.0, 700.0, 300.0]
        assert session.resumed.height == 3
        assert session.export_summary["value_pct_chg"][1] == pytest.approx(10.0)
        assert session.import_summary["value_pct_chg"][1] == pytest.approx(-20.0)

    @pytest.mark.asyncio
    async def test_query_windows(self):
        fake = FakeComexStat()
        await run(NCM, source=fake)

        windows = {(q["flow"], q["period_from"], q["period_to"]) for q in fake.queries}
        start = f"{settings.history_start_year}-01"
        assert windows == {
            ("export", start, "2024-12"),
            ("import", start, "2024-12"),
            ("export", "2025-01", "2025-08"),
            ("import", "2025-01", "2025-08"),
        }

    @pytest.mark.asyncio
    async def test_country_shares_default_year(self, monkeypatch):
        monkeypatch.setattr(settings, "country_breakdown_year", None)
        fake = FakeComexStat()
        session = await run(NCM, source=fake)

        assert fake.country_years == [2024, 2024]
        assert session.country_year == 2024
        assert session.export_countries["fob_share_pct"].to_list() == pytest.approx([75.0, 25.0])

    @pytest.mark.asyncio
    async def test_country_year_override(self):
        fake = FakeComexStat()
        session = await run(NCM, source=fake, country_year=2019)
        assert fake.country_years == [2019, 2019]
        assert session.country_year == 2019

    @pytest.mark.asyncio
    async def test_normalizes_ncm(self):
        fake = FakeComexStat()
        session = await run("8471.30.12", source=fake)
        assert session.ncm_code == NCM
        assert {q["ncm"] for q in fake.queries} == {NCM}

    @pytest.mark.asyncio
    async def test_invalid_ncm(self):
        with pytest.raises(ValueError):
            await run("not-an-ncm", source=FakeComexStat())


class TestUpstreamFailures:
    @pytest.mark.asyncio
    async def test_last_update_failure_empties_trade_tables(self):
        session = await run(NCM, source=FakeComexStat(fail={"last_update"}))

        assert len(session.errors) == 1
        assert "ConnectError" in session.errors[0]
        assert session.series.is_empty()
        assert session.export_summary.is_empty()
        assert session.export_countries.is_empty()
        assert session.last_update is None

    @pytest.mark.asyncio
    async def test_general_failure_keeps_country_shares(self):
        session = await run(NCM, source=FakeComexStat(fail={"general"}))

        assert session.series.is_empty()
        assert session.resumed.is_empty()
        assert not session.export_countries.is_empty()
        assert any("unexpected general payload" in e for e in session.errors)

    @pytest.mark.asyncio
    async def test_country_failure_keeps_series(self):
        session = await run(NCM, source=FakeComexStat(fail={"country"}))

        assert session.series.height == 3
        assert session.export_countries.is_empty()
        assert session.country_year is None
        assert session.errors == ("ComexStat: HTTP 500 for https://comex.test/general",)

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(200, text="<html>manutenção</html>"),
            httpx.Response(200, json={"data": {"year": 2025, "monthNumber": 0}}),
        ],
        ids=["html_body", "month_zero"],
    )
    async def test_unparseable_last_update_recorded(self, mock_http, response):
        base = "https://comex.test"
        mock_http.get(f"{base}/general/dates/updated").mock(return_value=response)
        mock_http.get(f"{base}/tables/ncm/{NCM}").mock(
            return_value=httpx.Response(200, json={"data": []})
        )
        session = await run(NCM, source=ComexStatSource(base_url=base, timeout=5.0))

        assert len(session.errors) == 1
        assert session.errors[0].startswith("ComexStat: ")
        assert session.series.is_empty()
        assert session.last_update is None

    @pytest.mark.asyncio
    async def test_failed_sibling_request_still_finishes(self):
        class SlowImportCountries(FakeComexStat):
            def __init__(self) -> None:
                super().__init__()
                self.finished: list[str] = []

            async def fetch_country_breakdown(self, ncm, flow, year):
                if flow == "export":
                    raise httpx.ConnectError("connection reset")
                await asyncio.sleep(0.01)
                self.finished.append(flow)
                return await super().fetch_country_breakdown(ncm, flow, year)

        fake = SlowImportCountries()
        session = await run(NCM, source=fake)

        assert fake.finished == ["import"]
        assert session.export_countries.is_empty()
        assert session.errors == ("ComexStat: ConnectError: connection reset",)

    @pytest.mark.asyncio
    async def test_overlapping_ranges_raise(self):
        # Current-year query answering with a year the historical range already covers
        fake = FakeComexStat(current={"export": [("2024", 1.0, 1.0)]})
        with pytest.raises(DuplicateYearError):
            await run(NCM, source=fake)


class TestNfeBranch:
    @pytest.fixture
    def nfe_raw(self) -> pl.DataFrame:
        return pl.DataFrame({
            "ano": ["2020", "2021", "2021"],
            "ncm_8d": ["84713012", "84713012", "02011000"],
            "qtd_tributavel_producao": ["300", "200", "999"],
            "qtd_tributavel_exp": ["100", "250", "0"],
            "qtd_tributavel_imp": ["50", "50", "0"],
        })

    @pytest.mark.asyncio
    async def test_sales_and_consumption(self, monkeypatch, nfe_raw):
        async def fake_extract(self, **kwargs):
            return nfe_raw

        monkeypatch.setattr(NfeWorkbookSource, "extract", fake_extract)
        session = await run(NCM, source=FakeComexStat(), nfe_path="dados_nfe.xlsx")

        assert session.invoices["ncm_code"].unique().to_list() == [NCM]
        # 2021: exports exceed production → clamped to 0
        assert session.invoices["domestic_sales_qty"].to_list() == [200.0, 0.0]
        assert session.nfe_sales["total_sales_kg"].to_list() == [300.0, 250.0]
        assert session.nfe_consumption["apparent_consumption_kg"].to_list() == [250.0, 50.0]
        assert session.nfe_consumption["import_penetration"].to_list() == pytest.approx([0.2, 1.0])

    @pytest.mark.asyncio
    async def test_no_rows_for_ncm(self, monkeypatch, nfe_raw):
        async def fake_extract(self, **kwargs):
            return nfe_raw

        monkeypatch.setattr(NfeWorkbookSource, "extract", fake_extract)
        session = await run("02011000", source=FakeComexStat(), nfe_path="dados_nfe.xlsx")
        assert session.nfe_sales.height == 1

        session = await run("99999999", source=FakeComexStat(), nfe_path="dados_nfe.xlsx")
        assert session.nfe_sales.is_empty()
        assert session.errors == ()

    @pytest.mark.asyncio
    async def test_unreadable_workbook(self, tmp_path):
        session = await run(NCM, source=FakeComexStat(), nfe_path=tmp_path / "missing.xlsx")
        assert session.nfe_sales.is_empty()
        assert len(session.errors) == 1
        assert session.errors[0].startswith("NFe-Workbook:")
        # Trade branch unaffected
        assert session.series.height == 3


class TestCgimBranch:
    @pytest.mark.asyncio
    async def test_info_and_contacts_for_ncm(self, monkeypatch):
        raw = pl.DataFrame({
            "NCM": ["84713012", "02011000", "84713012"],
            "Departamento Responsável": ["DECOI", "DEAGRO", None],
            "Sigla Entidade": [None, None, "ABINEE"],
            "sheet": ["NCMs", "NCMs", "Entidades"],
            "sheet_index": pl.Series([0, 0, 1], dtype=pl.Int32),
        })

        async def fake_extract(self, **kwargs):
            return raw

        monkeypatch.setattr(CgimWorkbookSource, "extract", fake_extract)
        session = await run(NCM, source=FakeComexStat(), cgim_path="cgim.xlsx")

        info = session.ncm_info()
        assert info is not None
        assert info.department == "DECOI"
        assert [c.acronym for c in session.contact_rows()] == ["ABINEE"]


class TestAnalysisSession:
    def test_empty(self):
        session = AnalysisSession.empty(NCM)
        assert session.series.is_empty()
        assert session.ncm_info() is None
        assert session.errors == ()

    def test_frozen(self):
        session = AnalysisSession.empty(NCM)
        with pytest.raises(dataclasses.FrozenInstanceError):
            session.ncm_code = "00000000"  # type: ignore[misc]

    @pytest.mark.asyncio
    async def test_row_views(self):
        session = await run(NCM, source=FakeComexStat())

        rows = session.yearly_rows()
        assert all(isinstance(r, YearlyTradeRow) for r in rows)
        assert rows[-1].year == "2025 (até ago)"

        variation = session.variation_rows("export")
        assert isinstance(variation[0], VariationRow)
        assert variation[0].value_pct_chg is None

        assert [r.country for r in session.country_rows("import")] == ["Argentina", "Chile"]

    @pytest.mark.asyncio
    async def test_chart_series(self):
        session = await run(NCM, source=FakeComexStat())
        assert session.chart_series(2024)["year"].to_list() == ["2024", "2025 (até ago)"]

    @pytest.mark.asyncio
    async def test_to_dict_is_json_serializable(self):
        session = await run(NCM, source=FakeComexStat())
        payload = json.loads(json.dumps(session.to_dict()))

        assert payload["ncm_code"] == NCM
        assert payload["last_update"] == {"year": 2025, "month": 8, "updated": None}
        assert payload["series"][0]["year"] == "2023"
        assert payload["export_summary"][0]["value_pct_chg"] is None
        assert payload["errors"] == []

    @pytest.mark.asyncio
    async def test_new_submission_is_a_new_session(self):
        fake = FakeComexStat()
        first = await run(NCM, source=fake)
        second = await run("02011000", source=fake)
        assert first is not second
        assert first.ncm_code == NCM
        assert first.series.height == 3

    @pytest.mark.asyncio
    async def test_ncm_code_bound_to_log_context(self):
        class ContextRecorder(FakeComexStat):
            seen: dict[str, Any] = {}

            async def fetch_last_update(self) -> LastUpdate:
                self.seen = structlog.contextvars.get_contextvars()
                return await super().fetch_last_update()

        fake = ContextRecorder()
        await run("8471.30.12", source=fake)

        assert fake.seen["ncm_code"] == NCM
        assert "ncm_code" not in structlog.contextvars.get_contextvars()
