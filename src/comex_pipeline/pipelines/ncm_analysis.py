"""
pipelines/ncm_analysis.py — Full analysis of one NCM code.

Sources:
  Comex Stat API          → yearly trade series, YoY summaries, country shares
  NF-e workbook (opt.)    → industry sales and apparent national consumption
  CGIM/DINTE workbook     → responsible department and entity contacts

Request graph (each step awaits only what it needs):

  last update ─┬─ historical export ─┐
  product  ────┤  historical import  ├─ aggregate → assemble → variation
               │  current export     │
               │  current import ────┘
               └─ country export / country import → shares

  NF-e workbook → filter NCM → resolve domestic sales → sales / CNA
  CGIM workbook → filter NCM → info / contacts

The three branches run concurrently. An upstream failure in one branch
leaves that branch's tables empty and is recorded in session.errors; a
DuplicateYearError propagates. Concurrent requests are always awaited to
completion, even when a sibling fails.

Usage:
    from comex_pipeline.pipelines.ncm_analysis import run
    session = await run("84713012", nfe_path="dados_nfe_2016_2023.xlsx")
    session.series           # YEARLY_SCHEMA DataFrame
    session.to_dict()        # JSON-ready
"""

from __future__ import annotations

import asyncio
import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Awaitable

import httpx
import polars as pl

from comex_shared.config import settings
from comex_shared.constants import Flow
from comex_shared.models import (
    CgimNcmInfo,
    ConsumptionRow,
    CountryRow,
    EntityContact,
    LastUpdate,
    ProductMetadata,
    ResolvedInvoiceRecord,
    ResumedTradeRow,
    SalesRow,
    VariationRow,
    YearlyTradeRow,
)
from comex_shared.ncm import normalize_ncm
from comex_shared.schemas import (
    CGIM_SCHEMA,
    CONSUMPTION_SCHEMA,
    CONTACT_SCHEMA,
    COUNTRY_SCHEMA,
    INVOICE_SCHEMA,
    RESUMED_COLUMNS,
    SALES_SCHEMA,
    VARIATION_SCHEMA,
    YEARLY_SCHEMA,
    empty_frame,
)
from comex_shared.time_utils import period
from comex_pipeline.sources.base import UpstreamParseError
from comex_pipeline.sources.comexstat import ComexStatSource
from comex_pipeline.sources.spreadsheets import CgimWorkbookSource, NfeWorkbookSource
from comex_pipeline.transforms.nfe import (
    build_apparent_consumption,
    build_sales_series,
    resolve_domestic_sales,
    select_ncm,
)
from comex_pipeline.transforms.time_series import (
    assemble_series,
    build_variation_summary,
    chart_window,
    label_partial_year,
    resume_series,
)
from comex_pipeline.transforms.trade import aggregate_yearly_trade, build_country_shares
from comex_pipeline.utils.logging import analysis_context, get_logger

log = get_logger(__name__, pipeline="ncm_analysis")

# Failures that empty a branch instead of aborting the run
UPSTREAM_ERRORS: tuple[type[Exception], ...] = (UpstreamParseError, httpx.HTTPError)


def _frame(schema: dict[str, pl.DataType]) -> Any:
    return field(default_factory=lambda: empty_frame(schema))


@dataclass(frozen=True, eq=False)
class AnalysisSession:
    """
    Every dataset derived for one NCM code.

    Immutable: a new NCM submission builds a new session, and pipeline
    stages advance it with dataclasses.replace().
    """

    ncm_code: str
    last_update: LastUpdate | None = None
    product: ProductMetadata | None = None

    historical: pl.DataFrame = _frame(YEARLY_SCHEMA)
    current: pl.DataFrame = _frame(YEARLY_SCHEMA)
    series: pl.DataFrame = _frame(YEARLY_SCHEMA)
    resumed: pl.DataFrame = _frame({c: YEARLY_SCHEMA[c] for c in RESUMED_COLUMNS})
    export_summary: pl.DataFrame = _frame(VARIATION_SCHEMA)
    import_summary: pl.DataFrame = _frame(VARIATION_SCHEMA)

    country_year: int | None = None
    export_countries: pl.DataFrame = _frame(COUNTRY_SCHEMA)
    import_countries: pl.DataFrame = _frame(COUNTRY_SCHEMA)

    cgim_info: pl.DataFrame = _frame(CGIM_SCHEMA)
    contacts: pl.DataFrame = _frame(CONTACT_SCHEMA)

    invoices: pl.DataFrame = _frame(INVOICE_SCHEMA)
    nfe_sales: pl.DataFrame = _frame(SALES_SCHEMA)
    nfe_consumption: pl.DataFrame = _frame(CONSUMPTION_SCHEMA)

    errors: tuple[str, ...] = ()

    @classmethod
    def empty(cls, ncm_code: str) -> "AnalysisSession":
        return cls(ncm_code=ncm_code)

    # ------------------------------------------------------------------
    # Row views for a presentation layer
    # ------------------------------------------------------------------

    def chart_series(self, since_year: int | None = None) -> pl.DataFrame:
        return chart_window(self.series, since_year or settings.chart_start_year)

    def yearly_rows(self) -> list[YearlyTradeRow]:
        return [YearlyTradeRow.from_row(r) for r in self.series.iter_rows(named=True)]

    def resumed_rows(self) -> list[ResumedTradeRow]:
        return [ResumedTradeRow.from_row(r) for r in self.resumed.iter_rows(named=True)]

    def variation_rows(self, direction: Flow) -> list[VariationRow]:
        df = self.export_summary if direction == "export" else self.import_summary
        return [VariationRow.from_row(r) for r in df.iter_rows(named=True)]

    def country_rows(self, direction: Flow) -> list[CountryRow]:
        df = self.export_countries if direction == "export" else self.import_countries
        return [CountryRow.from_row(r) for r in df.iter_rows(named=True)]

    def invoice_rows(self) -> list[ResolvedInvoiceRecord]:
        return [ResolvedInvoiceRecord.from_row(r) for r in self.invoices.iter_rows(named=True)]

    def sales_rows(self) -> list[SalesRow]:
        return [SalesRow.from_row(r) for r in self.nfe_sales.iter_rows(named=True)]

    def consumption_rows(self) -> list[ConsumptionRow]:
        return [ConsumptionRow.from_row(r) for r in self.nfe_consumption.iter_rows(named=True)]

    def ncm_info(self) -> CgimNcmInfo | None:
        if self.cgim_info.is_empty():
            return None
        return CgimNcmInfo.from_row(self.cgim_info.row(0, named=True))

    def contact_rows(self) -> list[EntityContact]:
        return [EntityContact.from_row(r) for r in self.contacts.iter_rows(named=True)]

    def to_dict(self) -> dict[str, Any]:
        """Plain dict of lists of row dicts; json.dumps-safe."""
        return {
            "ncm_code": self.ncm_code,
            "last_update": self.last_update.model_dump(mode="json") if self.last_update else None,
            "product": self.product.model_dump(mode="json") if self.product else None,
            "series": self.series.to_dicts(),
            "resumed": self.resumed.to_dicts(),
            "export_summary": self.export_summary.to_dicts(),
            "import_summary": self.import_summary.to_dicts(),
            "country_year": self.country_year,
            "export_countries": self.export_countries.to_dicts(),
            "import_countries": self.import_countries.to_dicts(),
            "cgim_info": self.cgim_info.to_dicts(),
            "contacts": self.contacts.to_dicts(),
            "invoices": self.invoices.to_dicts(),
            "nfe_sales": self.nfe_sales.to_dicts(),
            "nfe_consumption": self.nfe_consumption.to_dicts(),
            "errors": list(self.errors),
        }


# ---------------------------------------------------------------------------
# Branches
# ---------------------------------------------------------------------------


def _describe(exc: Exception) -> str:
    if isinstance(exc, httpx.HTTPStatusError):
        return f"ComexStat: HTTP {exc.response.status_code} for {exc.request.url}"
    if isinstance(exc, httpx.HTTPError):
        return f"ComexStat: {type(exc).__name__}: {exc}"
    return str(exc)


async def _settle(*aws: Awaitable[Any]) -> list[Any]:
    """
    Await every awaitable, then re-raise the first failure in argument order.

    Every awaitable has finished by the time this returns or raises.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return results


async def _fetch_flow(
    source: ComexStatSource,
    flow: Flow,
    ncm: str,
    start: tuple[int, int],
    end: tuple[int, int],
) -> pl.DataFrame | None:
    if start > end:
        return None
    return await source.run(
        flow=flow,
        ncm=ncm,
        period_from=period(*start),
        period_to=period(*end),
    )


async def _trade_branch(
    source: ComexStatSource,
    ncm: str,
    country_year: int | None,
) -> tuple[dict[str, Any], list[str]]:
    try:
        last, product = await _settle(
            source.fetch_last_update(),
            source.fetch_product_metadata(ncm),
        )
    except UPSTREAM_ERRORS as exc:
        log.error("trade_metadata_failed", ncm_code=ncm, error=str(exc))
        return {}, [_describe(exc)]

    fields: dict[str, Any] = {"last_update": last, "product": product}
    errors: list[str] = []

    hist_start = (settings.history_start_year, 1)
    hist_end = (last.year - 1, 12)
    cur_start = (last.year, 1)
    cur_end = (last.year, last.month)

    try:
        hist_exp, hist_imp, cur_exp, cur_imp = await _settle(
            _fetch_flow(source, "export", ncm, hist_start, hist_end),
            _fetch_flow(source, "import", ncm, hist_start, hist_end),
            _fetch_flow(source, "export", ncm, cur_start, cur_end),
            _fetch_flow(source, "import", ncm, cur_start, cur_end),
        )
    except UPSTREAM_ERRORS as exc:
        log.error("trade_series_failed", ncm_code=ncm, error=str(exc))
        errors.append(_describe(exc))
    else:
        historical = aggregate_yearly_trade(hist_exp, hist_imp, product)
        current = label_partial_year(
            aggregate_yearly_trade(cur_exp, cur_imp, product), last.year, last.month
        )
        series = assemble_series(historical, current)
        fields.update(
            historical=historical,
            current=current,
            series=series,
            resumed=resume_series(series),
            export_summary=build_variation_summary(series, "export"),
            import_summary=build_variation_summary(series, "import"),
        )
        log.info(
            "trade_series_built",
            ncm_code=ncm,
            years=len(series),
            historical_years=len(historical),
            current_rows=len(current),
        )

    year = country_year or settings.country_breakdown_year or last.year - 1
    try:
        exp_countries, imp_countries = await _settle(
            source.fetch_country_breakdown(ncm, "export", year),
            source.fetch_country_breakdown(ncm, "import", year),
        )
    except UPSTREAM_ERRORS as exc:
        log.error("country_breakdown_failed", ncm_code=ncm, year=year, error=str(exc))
        errors.append(_describe(exc))
    else:
        fields.update(
            country_year=year,
            export_countries=build_country_shares(exp_countries),
            import_countries=build_country_shares(imp_countries),
        )

    return fields, errors


async def _nfe_branch(
    ncm: str,
    nfe_path: str | Path | None,
) -> tuple[dict[str, Any], list[str]]:
    if nfe_path is None:
        return {}, []
    try:
        invoices = await NfeWorkbookSource().run(path=nfe_path)
    except UpstreamParseError as exc:
        return {}, [str(exc)]

    resolved = resolve_domestic_sales(select_ncm(invoices, ncm))
    if resolved.is_empty():
        log.info("nfe_no_rows_for_ncm", ncm_code=ncm)
    return {
        "invoices": resolved,
        "nfe_sales": build_sales_series(resolved),
        "nfe_consumption": build_apparent_consumption(resolved),
    }, []


async def _cgim_branch(
    ncm: str,
    cgim_path: str | Path | None,
) -> tuple[dict[str, Any], list[str]]:
    if cgim_path is None:
        return {}, []
    source = CgimWorkbookSource()
    try:
        raw = await source.extract(path=cgim_path)
        info = source.transform(raw)
        contacts = source.transform_contacts(raw)
    except UpstreamParseError as exc:
        return {}, [str(exc)]

    info = info.filter(pl.col("ncm_code") == ncm)
    contacts = contacts.filter(pl.col("ncm_code") == ncm)
    if info.is_empty():
        log.info("cgim_no_row_for_ncm", ncm_code=ncm)
    return {"cgim_info": info, "contacts": contacts}, []


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


async def run(
    ncm_code: str,
    *,
    nfe_path: str | Path | None = None,
    cgim_path: str | Path | None = None,
    source: ComexStatSource | None = None,
    country_year: int | None = None,
) -> AnalysisSession:
    """
    Build a fresh AnalysisSession for one NCM code.

    Args:
        ncm_code:     NCM in any common notation ("8471.30.12", 84713012).
        nfe_path:     Optional SECEX NF-e workbook.
        cgim_path:    Optional CGIM/DINTE workbook.
        source:       Comex Stat client (default: ComexStatSource()).
        country_year: Year of the partner breakdown; defaults to
                      settings.country_breakdown_year, then the last
                      complete year.

    Returns:
        AnalysisSession. Tables whose upstream failed are empty and the
        failure is listed in session.errors.

    Raises:
        ValueError:         ncm_code is not an 8-digit NCM.
        DuplicateYearError: historical and current ranges overlap.
    """
    code = normalize_ncm(ncm_code)
    if code is None:
        raise ValueError(f"invalid NCM code: {ncm_code!r}")

    source = source or ComexStatSource()
    with analysis_context(code):
        return await _run_session(code, source, nfe_path, cgim_path, country_year)


async def _run_session(
    code: str,
    source: ComexStatSource,
    nfe_path: str | Path | None,
    cgim_path: str | Path | None,
    country_year: int | None,
) -> AnalysisSession:
    session = AnalysisSession.empty(code)
    log.info(
        "ncm_analysis_start",
        nfe_file=str(nfe_path) if nfe_path else None,
        cgim_file=str(cgim_path) if cgim_path else None,
        source=(await source.get_metadata()).get("source_name"),
    )

    (trade, trade_errors), (nfe, nfe_errors), (cgim, cgim_errors) = await _settle(
        _trade_branch(source, code, country_year),
        _nfe_branch(code, nfe_path),
        _cgim_branch(code, cgim_path),
    )

    session = dataclasses.replace(
        session,
        **trade,
        **nfe,
        **cgim,
        errors=(*trade_errors, *nfe_errors, *cgim_errors),
    )

    log.info(
        "ncm_analysis_complete",
        years=len(session.series),
        nfe_years=len(session.nfe_sales),
        errors=len(session.errors),
    )
    return session
