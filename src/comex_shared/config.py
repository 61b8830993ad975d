"""
config.py — pydantic-settings Settings class.

All environment variables for the comex pipeline are declared here.
The sources, pipelines and CLI import `settings` from this module.

Usage:
    from comex_shared.config import settings
    print(settings.comexstat_base_url)
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _find_dotenv() -> Path | None:
    """Walk up from CWD to find the nearest .env file."""
    current = Path.cwd()
    for parent in [current, *current.parents]:
        candidate = parent / ".env"
        if candidate.is_file():
            return candidate
    return None


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=_find_dotenv() or ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # -------------------------------------------------------------------------
    # Comex Stat API
    # -------------------------------------------------------------------------
    comexstat_base_url: str = Field(default="https://api-comexstat.mdic.gov.br")
    comexstat_timeout: float = Field(default=120.0)
    comexstat_verify_ssl: bool = Field(default=True)

    # -------------------------------------------------------------------------
    # Analysis windows
    # -------------------------------------------------------------------------
    history_start_year: int = Field(default=2004)
    # None → last complete year (last update year - 1)
    country_breakdown_year: int | None = Field(default=None)
    chart_start_year: int = Field(default=2010)

    # -------------------------------------------------------------------------
    # Logging
    # -------------------------------------------------------------------------
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO"
    )
    log_format: Literal["json", "console"] = Field(default="console")

    @field_validator("comexstat_base_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/") if isinstance(v, str) else v


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------
settings = Settings()
