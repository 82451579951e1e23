"""Runtime settings loaded from ``QK_*`` environment variables."""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import BaseModel, Field, field_validator

ENV_PREFIX = "QK_"


class Settings(BaseModel):
    """Settings shared by the CLI and the HTTP server.

    Attributes:
        db_path: DuckDB database used for metadata and execution
        cards_dir: Directory of the JSON card store
        log_level: Root logging level name
    """

    db_path: Path = Field(Path("./data/questionkit.duckdb"), description="DuckDB file")
    cards_dir: Path = Field(Path("./data/cards"), description="Card store directory")
    log_level: str = Field("INFO", description="Logging level")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


def load_settings(environ: dict[str, str] | None = None) -> Settings:
    """Build settings from the environment, ignoring unset variables."""
    env = os.environ if environ is None else environ
    values = {}
    for name in Settings.model_fields:
        raw = env.get(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip():
            values[name] = raw.strip()
    return Settings(**values)
