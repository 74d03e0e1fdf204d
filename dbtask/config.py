"""Environment-driven configuration for dbtask.

Settings are read from ``DBTASK_``-prefixed environment variables and
fall back to defaults suitable for local development.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dbtask.db.datasource import DataSourceConfig

ENV_PREFIX = "DBTASK_"


def _env_bool(value: str) -> bool:
    return value.strip().strip('"').strip("'").lower() in ("1", "true", "yes")


@dataclass
class Settings:
    """Application settings."""

    # Database
    database: Path = Path("data/dbtask.db")
    busy_timeout: int = 5000  # milliseconds
    enable_wal: bool = True
    enable_foreign_keys: bool = True

    # Runner
    max_workers: int = 4

    # Logging
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Path | None = None

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> Settings:
        """Load settings from environment variables.

        Args:
            environ: Mapping to read from (defaults to ``os.environ``)

        Returns:
            Settings instance

        Raises:
            ValueError: If a numeric variable cannot be parsed
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            return env.get(f"{ENV_PREFIX}{name}")

        settings = cls()

        if (database := get("DATABASE")) is not None:
            settings.database = Path(database)
        if (busy_timeout := get("BUSY_TIMEOUT")) is not None:
            settings.busy_timeout = int(busy_timeout)
        if (enable_wal := get("ENABLE_WAL")) is not None:
            settings.enable_wal = _env_bool(enable_wal)
        if (foreign_keys := get("ENABLE_FOREIGN_KEYS")) is not None:
            settings.enable_foreign_keys = _env_bool(foreign_keys)
        if (max_workers := get("MAX_WORKERS")) is not None:
            settings.max_workers = int(max_workers)
        if (log_level := get("LOG_LEVEL")) is not None:
            settings.log_level = log_level.upper()
        if (json_logs := get("JSON_LOGS")) is not None:
            settings.json_logs = _env_bool(json_logs)
        if (log_file := get("LOG_FILE")) is not None:
            settings.log_file = Path(log_file)

        return settings

    def data_source_config(self) -> DataSourceConfig:
        """Build the SQLite data source configuration."""
        return DataSourceConfig(
            enable_wal=self.enable_wal,
            enable_foreign_keys=self.enable_foreign_keys,
            busy_timeout=self.busy_timeout,
        )
