"""
comex_pipeline.sources — data source adapters.

Each source wraps one external collaborator:
  ComexStatSource     — Comex Stat API (last update, NCM table, general query)
  NfeWorkbookSource   — SECEX NF-e Excel workbook
  CgimWorkbookSource  — CGIM/DINTE NCM responsibility / contacts workbook
"""

from comex_pipeline.sources.base import BaseSource, UpstreamParseError
from comex_pipeline.sources.comexstat import ComexStatSource
from comex_pipeline.sources.spreadsheets import CgimWorkbookSource, NfeWorkbookSource

__all__ = [
    "BaseSource",
    "UpstreamParseError",
    "ComexStatSource",
    "NfeWorkbookSource",
    "CgimWorkbookSource",
]
