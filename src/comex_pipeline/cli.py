"""
cli.py — Click CLI entrypoint.

Usage:
    comex analyze 84713012
    comex analyze 8471.30.12 --nfe-file dados_nfe.xlsx --cgim-file NCMs-CGIM-DINTE.xlsx
    comex analyze 84713012 --json > analysis.json
    comex last-update
"""

from __future__ import annotations

import asyncio
import json
import sys
from pathlib import Path

import click
import polars as pl
import structlog

from comex_shared.config import settings
from comex_shared.ncm import format_ncm
from comex_pipeline.utils.logging import configure_logging

log = structlog.get_logger(__name__)


def _echo_table(title: str, df: pl.DataFrame) -> None:
    click.echo(f"\n== {title} ==")
    if df.is_empty():
        click.echo("  (sem dados)")
        return
    with pl.Config(tbl_rows=-1, tbl_cols=-1, tbl_width_chars=200, tbl_hide_dataframe_shape=True):
        click.echo(str(df))


@click.group()
@click.option(
    "--log-level",
    default=settings.log_level,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"]),
    help="Log level",
)
@click.option(
    "--log-format",
    default=settings.log_format,
    type=click.Choice(["json", "console"]),
    help="Log renderer",
)
def main(log_level: str, log_format: str) -> None:
    """Comex Stat / NF-e analysis for a single NCM code."""
    configure_logging(log_level=log_level, log_format=log_format)


@main.command()
@click.argument("ncm")
@click.option(
    "--nfe-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="SECEX NF-e workbook (.xlsx)",
)
@click.option(
    "--cgim-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    help="CGIM/DINTE NCM responsibility workbook (.xlsx)",
)
@click.option("--country-year", type=int, default=None, help="Year of the partner breakdown")
@click.option("--json", "as_json", is_flag=True, help="Print the session as JSON")
def analyze(
    ncm: str,
    nfe_file: Path | None,
    cgim_file: Path | None,
    country_year: int | None,
    as_json: bool,
) -> None:
    """Run the full analysis for NCM."""
    from comex_pipeline.pipelines.ncm_analysis import run
    from comex_pipeline.transforms.time_series import DuplicateYearError

    try:
        session = asyncio.run(
            run(ncm, nfe_path=nfe_file, cgim_path=cgim_file, country_year=country_year)
        )
    except (ValueError, DuplicateYearError) as exc:
        log.error("analysis_failed", ncm=ncm, error=str(exc))
        raise click.ClickException(str(exc)) from exc

    if as_json:
        click.echo(json.dumps(session.to_dict(), ensure_ascii=False, indent=2))
    else:
        product = session.product
        click.echo(f"NCM {format_ncm(session.ncm_code)}")
        if product is not None:
            click.echo(f"  {product.description or '-'} ({product.statistical_unit or '-'})")
        if session.last_update is not None:
            click.echo(
                f"  Dados até {session.last_update.month:02d}/{session.last_update.year}"
            )

        _echo_table("Série anual resumida", session.resumed)
        _echo_table("Exportações - variação anual", session.export_summary)
        _echo_table("Importações - variação anual", session.import_summary)
        if session.country_year is not None:
            _echo_table(f"Exportações por país ({session.country_year})", session.export_countries)
            _echo_table(f"Importações por país ({session.country_year})", session.import_countries)
        if nfe_file is not None:
            _echo_table("Vendas da indústria nacional", session.nfe_sales)
            _echo_table("Consumo nacional aparente", session.nfe_consumption)
        if cgim_file is not None:
            _echo_table("Responsável CGIM/DINTE", session.cgim_info)
            _echo_table("Entidades", session.contacts)

    for error in session.errors:
        click.echo(f"  ✗ {error}", err=True)
    if session.errors:
        sys.exit(1)


@main.command("last-update")
def last_update() -> None:
    """Show the freshest month published by Comex Stat."""
    from comex_pipeline.sources.comexstat import ComexStatSource

    try:
        last = asyncio.run(ComexStatSource().fetch_last_update())
    except Exception as exc:
        raise click.ClickException(f"Comex Stat unavailable: {exc}") from exc
    click.echo(f"{last.year}-{last.month:02d}")


if __name__ == "__main__":
    main()
