"""
sources/comexstat.py — Comex Stat (MDIC) API source adapter.

Endpoints used:
  GET  /general/dates/updated   — year and month of the freshest published data
  GET  /tables/ncm/{code}       — NCM description and statistical unit
  POST /general                 — aggregated trade query

General query body:
  {
    "flow": "export" | "import",
    "monthDetail": false,
    "period": {"from": "2004-01", "to": "2024-12"},
    "filters": [{"filter": "ncm", "values": ["84713012"]}],
    "details": ["ncm"],            # or ["country"] for the partner breakdown
    "metrics": ["metricFOB", "metricKG", ...]
  }

General query response shape:
  {"data": {"list": [{"year": "2023", "coNcm": "84713012",
                      "metricFOB": "123456", "metricKG": "789", ...}, ...]}}

Metric values arrive as strings; everything is kept as String in extract()
and cast in transform().

Usage:
    source = ComexStatSource()
    last = await source.fetch_last_update()
    df = await source.run(flow="export", ncm="84713012",
                          period_from="2004-01", period_to="2024-12")
    # columns: RAW_SCHEMA (year, flow, metric_fob, metric_kg, ...)
"""

from __future__ import annotations

from datetime import date
from typing import Any

import httpx
import polars as pl
import structlog

from comex_shared.config import settings
from comex_shared.constants import COUNTRY_METRICS, METRIC_COLUMNS, METRICS_BY_FLOW, Flow
from comex_shared.models import LastUpdate, ProductMetadata
from comex_shared.ncm import is_valid_ncm
from comex_shared.schemas import RAW_SCHEMA, empty_frame
from comex_pipeline.sources.base import BaseSource, UpstreamParseError
from comex_pipeline.utils.retry import with_retry

log = structlog.get_logger(__name__)

# Keys the NCM table has used for description / unit over API versions
_DESCRIPTION_KEYS: tuple[str, ...] = ("text", "description", "noNcmpt", "noNcm")
_UNIT_KEYS: tuple[str, ...] = ("unit", "statisticalUnit", "noUnid", "unidade")

_COUNTRY_KEYS: tuple[str, ...] = ("country", "noPais", "coPais")


def _first_key(record: dict[str, Any], keys: tuple[str, ...]) -> Any:
    for key in keys:
        value = record.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_str(value: Any) -> str | None:
    return None if value is None else str(value)


def _records_to_frame(records: list[dict[str, Any]]) -> pl.DataFrame:
    """Build an all-String DataFrame from heterogeneous JSON records."""
    columns: list[str] = []
    for record in records:
        for key in record:
            if key not in columns:
                columns.append(key)
    rows = [
        {col: _as_str(rec.get(col)) for col in columns}
        for rec in records
    ]
    return pl.DataFrame(rows, schema={col: pl.String for col in columns})


class ComexStatSource(BaseSource):
    """Queries the Comex Stat general endpoint for one NCM at a time."""

    name = "ComexStat"

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        verify: bool | None = None,
    ) -> None:
        super().__init__()
        self._base_url = (base_url or settings.comexstat_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.comexstat_timeout
        self._verify = verify if verify is not None else settings.comexstat_verify_ssl

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self._timeout,
            verify=self._verify,
            follow_redirects=True,
        )

    # ------------------------------------------------------------------
    # HTTP
    # ------------------------------------------------------------------

    @with_retry(max_attempts=3, base_delay=1.0, retry_on=(httpx.TransportError,))
    async def _get(self, path: str) -> dict[str, Any]:
        url = f"{self._base_url}{path}"
        self._log.debug("comexstat_get", url=url)
        async with self._client() as client:
            response = await client.get(url)
            response.raise_for_status()
            return self._json(response)

    @with_retry(max_attempts=3, base_delay=2.0, retry_on=(httpx.TransportError,))
    async def _post_general(self, body: dict[str, Any]) -> dict[str, Any]:
        url = f"{self._base_url}/general"
        self._log.info(
            "comexstat_general_query",
            flow=body.get("flow"),
            period=body.get("period"),
            details=body.get("details"),
        )
        async with self._client() as client:
            response = await client.post(url, json=body)
            response.raise_for_status()
            return self._json(response)

    def _json(self, response: httpx.Response) -> dict[str, Any]:
        """Decode a response body; non-JSON or non-object bodies are upstream errors."""
        try:
            payload = response.json()
        except ValueError as exc:
            raise UpstreamParseError(
                self.name,
                f"non-JSON body from {response.request.url}: {response.text!r:.200}",
            ) from exc
        if not isinstance(payload, dict):
            raise UpstreamParseError(
                self.name,
                f"expected a JSON object from {response.request.url}, got {type(payload).__name__}",
            )
        return payload

    def _general_records(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        data = payload.get("data")
        if isinstance(data, dict):
            records = data.get("list", [])
        elif isinstance(data, list):
            records = data
        else:
            raise UpstreamParseError(self.name, f"unexpected general payload: {payload!r:.200}")
        if not isinstance(records, list):
            raise UpstreamParseError(self.name, "general payload 'list' is not a list")
        if not all(isinstance(rec, dict) for rec in records):
            raise UpstreamParseError(self.name, "general payload 'list' holds non-object rows")
        return records

    # ------------------------------------------------------------------
    # Metadata endpoints
    # ------------------------------------------------------------------

    async def fetch_last_update(self) -> LastUpdate:
        """Year and month of the freshest data Comex Stat has published."""
        payload = await self._get("/general/dates/updated")
        data = payload.get("data", payload)
        if not isinstance(data, dict):
            raise UpstreamParseError(self.name, f"bad last-update payload: {payload!r:.200}")

        updated: date | None = None
        raw_updated = data.get("updated")
        if isinstance(raw_updated, str) and len(raw_updated) >= 10:
            try:
                updated = date.fromisoformat(raw_updated[:10])
            except ValueError:
                updated = None

        # pydantic.ValidationError is a ValueError (month outside 1..12)
        try:
            year = int(data["year"])
            month = int(data.get("monthNumber", data.get("month")))
            last = LastUpdate(year=year, month=month, updated=updated)
        except (KeyError, TypeError, ValueError) as exc:
            raise UpstreamParseError(self.name, f"bad last-update payload: {payload!r:.200}") from exc

        self._log.info("last_update", year=last.year, month=last.month)
        return last

    async def fetch_product_metadata(self, ncm: str) -> ProductMetadata:
        """Description and statistical unit for an NCM code."""
        payload = await self._get(f"/tables/ncm/{ncm}")
        data = payload.get("data", payload)
        record: dict[str, Any] = {}
        if isinstance(data, list):
            record = data[0] if data and isinstance(data[0], dict) else {}
        elif isinstance(data, dict):
            record = data

        if not record:
            self._log.warning("ncm_not_found", ncm=ncm)

        return ProductMetadata(
            ncm_code=ncm,
            description=_first_key(record, _DESCRIPTION_KEYS),
            statistical_unit=_first_key(record, _UNIT_KEYS),
        )

    # ------------------------------------------------------------------
    # BaseSource interface
    # ------------------------------------------------------------------

    async def extract(
        self,
        *,
        flow: Flow,
        ncm: str,
        period_from: str,
        period_to: str,
        metrics: list[str] | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """
        Run a general query for one NCM, one flow and one period.

        Args:
            flow:        "export" or "import".
            ncm:         8-digit NCM code.
            period_from: "YYYY-MM" inclusive.
            period_to:   "YYYY-MM" inclusive.
            metrics:     Comex Stat metric names. Defaults to the flow's set.

        Returns:
            Raw all-String DataFrame with the API's own column names plus
            a "flow" column.

        Raises:
            ValueError: ncm is not an 8-digit code.
        """
        if not is_valid_ncm(ncm):
            raise ValueError(f"ncm must be 8 digits, got {ncm!r}")
        body = {
            "flow": flow,
            "monthDetail": False,
            "period": {"from": period_from, "to": period_to},
            "filters": [{"filter": "ncm", "values": [ncm]}],
            "details": ["ncm"],
            "metrics": metrics or METRICS_BY_FLOW[flow],
        }
        records = self._general_records(await self._post_general(body))
        if not records:
            self._log.warning("comexstat_no_records", flow=flow, ncm=ncm,
                              period_from=period_from, period_to=period_to)
            return pl.DataFrame(schema={"year": pl.String, "flow": pl.String})

        return _records_to_frame(records).with_columns(pl.lit(flow).alias("flow"))

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Normalize a general-query frame into RAW_SCHEMA.

        Metric columns absent from the response (e.g. CIF on exports) are
        added as null; unparseable numbers become null.
        """
        if raw.is_empty():
            return empty_frame(RAW_SCHEMA)

        self._require_columns(raw, ["year", "flow"])
        df = raw.rename({k: v for k, v in METRIC_COLUMNS.items() if k in raw.columns})
        metric_cols = list(METRIC_COLUMNS.values())
        df = self._to_float(df, metric_cols)

        return df.select(
            pl.col("year").cast(pl.String).str.strip_chars(),
            pl.col("flow").cast(pl.String),
            *[pl.col(c) for c in metric_cols],
        )

    async def fetch_country_breakdown(
        self,
        ncm: str,
        flow: Flow,
        year: int,
    ) -> pl.DataFrame:
        """
        Per-partner FOB and KG for one NCM, flow and calendar year.

        Returns:
            DataFrame with columns: country (String), metric_fob, metric_kg.
        """
        body = {
            "flow": flow,
            "monthDetail": False,
            "period": {"from": f"{year}-01", "to": f"{year}-12"},
            "filters": [{"filter": "ncm", "values": [ncm]}],
            "details": ["country"],
            "metrics": COUNTRY_METRICS,
        }
        records = self._general_records(await self._post_general(body))
        schema = {"country": pl.String, "metric_fob": pl.Float64, "metric_kg": pl.Float64}
        if not records:
            return pl.DataFrame(schema=schema)

        rows = [
            {
                "country": _as_str(_first_key(rec, _COUNTRY_KEYS)),
                "metric_fob": _as_str(rec.get("metricFOB")),
                "metric_kg": _as_str(rec.get("metricKG")),
            }
            for rec in records
        ]
        df = pl.DataFrame(
            rows,
            schema={"country": pl.String, "metric_fob": pl.String, "metric_kg": pl.String},
        )
        return self._to_float(df, ["metric_fob", "metric_kg"]).select(list(schema))

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "base_url": self._base_url,
            "description": "Comex Stat — Brazilian foreign trade statistics (MDIC/SECEX)",
        }
