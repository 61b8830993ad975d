"""
sources/base.py — Abstract base class for all data source adapters.

Each concrete source must implement:
  extract()      — fetch or read raw data, return polars DataFrame
  transform()    — clean/normalize raw DataFrame into the standard schema
  get_metadata() — return dict with source info for logging

The run() method orchestrates extract → transform → return and handles
timing/logging automatically. Pipelines call run() rather than the
individual methods.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Any

import polars as pl
import structlog

log = structlog.get_logger(__name__)


class UpstreamParseError(RuntimeError):
    """A collaborator returned data the pipeline cannot turn into records."""

    def __init__(self, source_name: str, message: str) -> None:
        super().__init__(f"{source_name}: {message}")
        self.source_name = source_name


class BaseSource(ABC):
    """Abstract base for all comex data source adapters."""

    # Prefix for log context and UpstreamParseError messages
    name: str = "unknown"

    def __init__(self) -> None:
        self._log = log.bind(source_name=self.name)

    # ------------------------------------------------------------------
    # Source contract
    # ------------------------------------------------------------------

    @abstractmethod
    async def extract(self, **kwargs: Any) -> pl.DataFrame:
        """
        Fetch raw data from the external source.

        Implementations should:
        - Make HTTP calls (via httpx, decorated with @with_retry) or read files
        - Return a raw polars DataFrame with all original columns preserved

        Args:
            **kwargs: Source-specific parameters (flow, period, path, ...)

        Returns:
            Raw polars DataFrame.
        """
        ...

    @abstractmethod
    def transform(self, raw: pl.DataFrame) -> pl.DataFrame:
        """
        Clean and normalize a raw DataFrame into the standard domain schema.

        Implementations should:
        - Rename columns to snake_case domain names
        - Cast numeric strings to Float64, leaving unparseable values null
        - Normalize NCM codes to 8 digits
        - Raise UpstreamParseError when required columns are missing

        Args:
            raw: DataFrame returned by extract().

        Returns:
            Normalized polars DataFrame.
        """
        ...

    @abstractmethod
    async def get_metadata(self) -> dict[str, Any]:
        """
        Return source-level metadata for observability.

        Returns:
            dict suitable for logging.
        """
        ...

    # ------------------------------------------------------------------
    # Pipelines call run(), not extract()/transform() directly
    # ------------------------------------------------------------------

    async def run(self, **kwargs: Any) -> pl.DataFrame:
        """
        Extract + transform in sequence with timing and structured logging.

        Args:
            **kwargs: Forwarded to extract().

        Returns:
            Transformed polars DataFrame.

        Raises:
            Any exception from extract() or transform() after logging it.
        """
        run_log = self._log.bind(**{k: str(v) for k, v in kwargs.items()})
        run_log.info("source_run_start")

        t0 = time.monotonic()
        try:
            raw = await self.extract(**kwargs)
            extract_ms = int((time.monotonic() - t0) * 1000)
            run_log.info(
                "extract_complete",
                raw_rows=len(raw),
                raw_cols=raw.width,
                duration_ms=extract_ms,
            )

            t1 = time.monotonic()
            result = self.transform(raw)
            run_log.info(
                "transform_complete",
                result_rows=len(result),
                duration_ms=int((time.monotonic() - t1) * 1000),
            )
            return result

        except Exception as exc:
            run_log.error(
                "source_run_failed",
                error=str(exc),
                duration_ms=int((time.monotonic() - t0) * 1000),
            )
            raise

    # ------------------------------------------------------------------
    # Shared helpers available to all subclasses
    # ------------------------------------------------------------------

    @staticmethod
    def _to_float(df: pl.DataFrame, columns: list[str]) -> pl.DataFrame:
        """
        Cast columns to Float64, coercing errors to null.

        Missing columns are added as all-null Float64 so downstream
        schemas are stable regardless of which metrics were requested.
        """
        exprs: list[pl.Expr] = []
        for col in columns:
            if col in df.columns:
                exprs.append(pl.col(col).cast(pl.Float64, strict=False).alias(col))
            else:
                exprs.append(pl.lit(None, dtype=pl.Float64).alias(col))
        return df.with_columns(exprs) if exprs else df

    def _require_columns(self, df: pl.DataFrame, required: list[str]) -> None:
        missing = [c for c in required if c not in df.columns]
        if missing:
            raise UpstreamParseError(
                self.name, f"missing columns {missing}; got {df.columns}"
            )
