"""
sources/spreadsheets.py — User-supplied Excel workbooks.

Two workbooks feed the analysis alongside Comex Stat:

  NF-e workbook (e.g. dados_nfe_2016_2023.xlsx, provided by SECEX)
    One row per (year, NCM) with production, export and import figures
    derived from tax invoices:
      ano | ncm_8d | valor_producao | qtd_tributavel_producao | valor_exp |
      qtd_tributavel_exp | valor_cif_imp_dolar | qtd_tributavel_imp |
      [Vendas internas (KG)]

  CGIM/DINTE workbook (e.g. 20241011_NCMs-CGIM-DINTE.xlsx)
    First sheet: NCM → responsible department / sector classification.
    Other sheets: industry-association contacts, each row tagged with NCM.

Decoding is delegated to polars.read_excel (calamine engine). Every cell is
read as text (infer_schema_length=0) and cast in transform(), the same way
CSV sources are handled.

Usage:
    nfe = NfeWorkbookSource()
    invoices = await nfe.run(path="dados_nfe_2016_2023.xlsx")

    cgim = CgimWorkbookSource()
    raw = await cgim.extract(path="NCMs-CGIM-DINTE.xlsx")
    info = cgim.transform(raw)
    contacts = cgim.transform_contacts(raw)
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import polars as pl
import structlog

from comex_shared.ncm import normalize_ncm
from comex_shared.schemas import CGIM_SCHEMA, CONTACT_SCHEMA, INVOICE_SCHEMA, empty_frame
from comex_pipeline.sources.base import BaseSource, UpstreamParseError

log = structlog.get_logger(__name__)

# Lower-cased workbook header → INVOICE_SCHEMA column
NFE_COLUMN_MAP: dict[str, str] = {
    "ano": "year",
    "ncm_8d": "ncm_code",
    "valor_producao": "production_value",
    "qtd_tributavel_producao": "production_qty",
    "valor_exp": "export_value",
    "qtd_tributavel_exp": "export_qty",
    "valor_cif_imp_dolar": "import_cif_usd",
    "qtd_tributavel_imp": "import_qty",
    "vendas internas (kg)": "domestic_sales_qty",
    "vendas_internas_kg": "domestic_sales_qty",
}

NFE_REQUIRED: list[str] = ["ano", "ncm_8d", "qtd_tributavel_producao", "qtd_tributavel_exp"]

CGIM_COLUMN_MAP: dict[str, str] = {
    "ncm": "ncm_code",
    "departamento responsável": "department",
    "coordenação-geral responsável": "general_coordination",
    "agrupamento": "grouping",
    "setores": "sectors",
    "subsetores": "subsectors",
    "produtos": "products",
}

CONTACT_COLUMN_MAP: dict[str, str] = {
    "ncm": "ncm_code",
    "sigla entidade": "acronym",
    "entidade": "entity",
    "nome do dirigente": "leader_name",
    "cargo": "position",
    "e-mail": "email",
    "telefone": "phone",
}


def _lower_headers(df: pl.DataFrame) -> pl.DataFrame:
    """Strip and lower-case headers; headers that collide ('NCM' / 'Ncm') are coalesced."""
    groups: dict[str, list[str]] = {}
    for col in df.columns:
        groups.setdefault(str(col).strip().lower(), []).append(col)
    return df.select(
        [
            pl.coalesce(cols).alias(name) if len(cols) > 1 else pl.col(cols[0]).alias(name)
            for name, cols in groups.items()
        ]
    )


def _ncm_expr(col: str = "ncm_code") -> pl.Expr:
    return pl.col(col).cast(pl.String).map_elements(normalize_ncm, return_dtype=pl.String)


def _select_mapped(
    df: pl.DataFrame,
    column_map: dict[str, str],
    schema: dict[str, pl.DataType],
) -> pl.DataFrame:
    """Rename known headers and project onto schema, filling absent columns with null."""
    renamed = df.rename({k: v for k, v in column_map.items() if k in df.columns})
    return renamed.select(
        [
            pl.col(name).cast(dtype, strict=False).alias(name)
            if name in renamed.columns
            else pl.lit(None, dtype=dtype).alias(name)
            for name, dtype in schema.items()
        ]
    )


class NfeWorkbookSource(BaseSource):
    """Reads the SECEX NF-e workbook into INVOICE_SCHEMA rows."""

    name = "NFe-Workbook"

    async def extract(
        self,
        *,
        path: str | Path,
        sheet_name: str | None = None,
        **kwargs: Any,
    ) -> pl.DataFrame:
        """Read one sheet (default: first) with every cell as text."""
        try:
            if sheet_name:
                return pl.read_excel(path, sheet_name=sheet_name, infer_schema_length=0)
            return pl.read_excel(path, sheet_id=1, infer_schema_length=0)
        except Exception as exc:
            raise UpstreamParseError(self.name, f"cannot read workbook {path}: {exc}") from exc

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Normalize an NF-e sheet into INVOICE_SCHEMA.

        - year keeps the leading four digits of "ano" ("2020.0" → "2020")
        - ncm_code is normalized to 8 digits
        - domestic_sales_qty stays null when the workbook has no such column
        - rows without a year or NCM are dropped
        """
        if raw.is_empty():
            return empty_frame(INVOICE_SCHEMA)

        df = _lower_headers(raw)
        self._require_columns(df, NFE_REQUIRED)

        df = df.with_columns(
            pl.col("ano").cast(pl.String).str.extract(r"(\d{4})", 1).alias("ano"),
            _ncm_expr("ncm_8d").alias("ncm_8d"),
        )
        df = _select_mapped(df, NFE_COLUMN_MAP, INVOICE_SCHEMA)

        n_before = len(df)
        df = df.filter(pl.col("year").is_not_null() & pl.col("ncm_code").is_not_null())
        dropped = n_before - len(df)
        if dropped:
            self._log.warning("nfe_rows_dropped", dropped=dropped, reason="missing year or ncm")

        self._log.info(
            "nfe_transform_complete",
            output_rows=len(df),
            unique_ncms=df["ncm_code"].n_unique(),
        )
        return df

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "description": "NF-e derived production / sales / trade quantities (RFB via SECEX)",
        }


class CgimWorkbookSource(BaseSource):
    """Reads the CGIM/DINTE workbook: NCM classification plus entity contacts."""

    name = "CGIM-Workbook"

    async def extract(self, *, path: str | Path, **kwargs: Any) -> pl.DataFrame:
        """
        Read every sheet and stack them into one all-String frame.

        Headers are stripped and lower-cased per sheet before stacking, so
        "NCM" on one sheet and "Ncm" on another land in the same column.

        Adds:
            sheet        — sheet name
            sheet_index  — 0 for the classification sheet, 1.. for contact sheets
        """
        try:
            sheets: dict[str, pl.DataFrame] = pl.read_excel(
                path, sheet_id=0, infer_schema_length=0
            )
        except Exception as exc:
            raise UpstreamParseError(self.name, f"cannot read workbook {path}: {exc}") from exc

        frames = [
            _lower_headers(df).with_columns(
                pl.lit(name).alias("sheet"),
                pl.lit(idx, dtype=pl.Int32).alias("sheet_index"),
            )
            for idx, (name, df) in enumerate(sheets.items())
        ]
        if not frames:
            return pl.DataFrame(schema={"sheet": pl.String, "sheet_index": pl.Int32})
        return pl.concat(frames, how="diagonal_relaxed")

    def _prepare(self, raw: pl.DataFrame, sheet_filter: pl.Expr) -> pl.DataFrame:
        df = _lower_headers(raw).filter(sheet_filter)
        if df.is_empty():
            return df
        self._require_columns(df, ["ncm"])
        return df.with_columns(_ncm_expr("ncm").alias("ncm")).filter(
            pl.col("ncm").is_not_null()
        )

    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Classification sheet → CGIM_SCHEMA, one row per NCM (first wins)."""
        if raw.is_empty():
            return empty_frame(CGIM_SCHEMA)
        df = self._prepare(raw, pl.col("sheet_index") == 0)
        if df.is_empty():
            return empty_frame(CGIM_SCHEMA)
        return _select_mapped(df, CGIM_COLUMN_MAP, CGIM_SCHEMA).unique(
            subset=["ncm_code"], keep="first", maintain_order=True
        )

    def transform_contacts(self, raw: pl.DataFrame) -> pl.DataFrame:
        """Contact sheets → CONTACT_SCHEMA; sheets without an NCM column are skipped."""
        if raw.is_empty():
            return empty_frame(CONTACT_SCHEMA)

        df = _lower_headers(raw)
        if "ncm" not in df.columns:
            return empty_frame(CONTACT_SCHEMA)
        df = self._prepare(raw, pl.col("sheet_index") > 0)
        if df.is_empty():
            return empty_frame(CONTACT_SCHEMA)
        return _select_mapped(df, CONTACT_COLUMN_MAP, CONTACT_SCHEMA)

    async def get_metadata(self) -> dict[str, Any]:
        return {
            "source_name": self.name,
            "description": "CGIM/DINTE NCM responsibility map and entity contacts",
        }
