"""Application settings with environment variable support.

Uses pydantic-settings for typed configuration validation.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings


class BanqueSettings(BaseSettings):
    """Application configuration loaded from environment variables."""

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    json_logs: bool = Field(default=False, description="Render logs as JSON lines")
    log_file: Path | None = Field(
        default=Path("logs/banque.log"),
        description="Rotating log file (none to log to stdout only)",
    )

    # Persistence
    storage_dir: Path = Field(default=Path("data"), description="Directory of the JSON file backend")
    snapshot_key: str = Field(
        default="mimmoza.banque.snapshot.v1",
        description="Namespaced key of the persisted Banque snapshot",
    )

    # Credit defaults used when the dossier carries no rate
    default_interest_rate_pct: float = Field(default=4.0, ge=0, le=20)
    default_insurance_pct: float = Field(default=0.36, ge=0, le=5)

    # Export
    report_output_dir: Path = Field(default=Path("reports"), description="Exporter output directory")

    model_config = {
        "env_prefix": "BANQUE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }


@lru_cache
def get_settings() -> BanqueSettings:
    """Get cached application settings."""
    return BanqueSettings()
