"""
tests/conftest.py — Shared pytest fixtures for the comex test suite.

Provides:
  fixture_path()      — resolves paths to tests/fixtures/
  product()           — ProductMetadata for NCM 84713012
  raw_frame()         — builds RAW_SCHEMA frames from compact row dicts
  invoice_frame()     — builds INVOICE_SCHEMA frames from compact row dicts
  comexstat_*         — parsed Comex Stat JSON payloads
  mock_http           — configured respx router for faking HTTP responses
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable

import polars as pl
import pytest
import respx

from comex_shared.models import ProductMetadata
from comex_shared.schemas import INVOICE_SCHEMA, RAW_SCHEMA

FIXTURES_DIR = Path(__file__).parent / "fixtures"

NCM = "84713012"


def _load(name: str) -> dict:
    return json.loads((FIXTURES_DIR / name).read_text(encoding="utf-8"))


def _frame(rows: list[dict[str, Any]], schema: dict[str, pl.DataType]) -> pl.DataFrame:
    return pl.DataFrame(
        [{col: row.get(col) for col in schema} for row in rows],
        schema=schema,
    )


# ---------------------------------------------------------------------------
# Path helpers
# ---------------------------------------------------------------------------

@pytest.fixture
def fixture_path() -> Path:
    return FIXTURES_DIR


# ---------------------------------------------------------------------------
# Domain values
# ---------------------------------------------------------------------------

@pytest.fixture
def product() -> ProductMetadata:
    return ProductMetadata(
        ncm_code=NCM,
        description="Máquinas automáticas para processamento de dados, portáteis",
        statistical_unit="UNIDADE",
    )


@pytest.fixture
def raw_frame() -> Callable[..., pl.DataFrame]:
    """
    Factory for RAW_SCHEMA frames.

    Usage:
        exports = raw_frame("export", {"year": "2020", "metric_fob": 1000.0, "metric_kg": 100.0})
    """

    def build(flow: str, *rows: dict[str, Any]) -> pl.DataFrame:
        return _frame([{"flow": flow, **row} for row in rows], RAW_SCHEMA)

    return build


@pytest.fixture
def invoice_frame() -> Callable[..., pl.DataFrame]:
    """Factory for INVOICE_SCHEMA frames; ncm_code defaults to 84713012."""

    def build(*rows: dict[str, Any]) -> pl.DataFrame:
        return _frame([{"ncm_code": NCM, **row} for row in rows], INVOICE_SCHEMA)

    return build


# ---------------------------------------------------------------------------
# Comex Stat payloads
# ---------------------------------------------------------------------------

@pytest.fixture
def comexstat_last_update() -> dict:
    return _load("comexstat_last_update.json")


@pytest.fixture
def comexstat_ncm() -> dict:
    return _load("comexstat_ncm_84713012.json")


@pytest.fixture
def comexstat_export() -> dict:
    return _load("comexstat_general_export.json")


@pytest.fixture
def comexstat_import() -> dict:
    return _load("comexstat_general_import.json")


@pytest.fixture
def comexstat_country_export() -> dict:
    return _load("comexstat_country_export.json")


# ---------------------------------------------------------------------------
# respx HTTP mock router
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_http():
    """
    Activate the respx mock router for all httpx requests.

    Usage in tests:
        def test_something(mock_http):
            mock_http.get("https://...").mock(return_value=httpx.Response(200, json={...}))
    """
    with respx.mock(assert_all_called=False) as router:
        yield router
