"""
comex_pipeline — Comex Stat / NF-e analysis pipeline for one NCM code.

Architecture:
  sources/     — Comex Stat API client and the NF-e / CGIM spreadsheet readers
  transforms/  — yearly trade aggregation, series assembly, YoY variation,
                 NF-e sales and apparent national consumption
  pipelines/   — ncm_analysis: wires sources -> transforms into an AnalysisSession
  utils/       — structlog configuration, exponential-backoff retry decorator

Quick start:
    from comex_pipeline.pipelines.ncm_analysis import run
    import asyncio
    session = asyncio.run(run("84713012"))
    session.export_summary   # polars DataFrame

CLI:
    comex analyze 84713012
    comex analyze 84713012 --nfe-file dados_nfe_2016_2023.xlsx --json
    comex last-update

Shared code from comex_shared:
    from comex_shared.config import settings
    from comex_shared.models import YearlyTradeRow, VariationRow
    from comex_shared.ncm import normalize_ncm
"""

__version__ = "0.1.0"
