"""
Data sources that hand connections to units of work.

A data source is owned by the caller and outlives every unit of work that
draws from it. Pooled implementations (SQLAlchemy pools, psycopg pools,
driver-level pools) satisfy :class:`DataSource` as long as closing a
connection hands it back. :class:`SQLiteDataSource` is a plain, non-pooling
implementation that opens one configured connection per request.

Example:
    from dbtask.db.datasource import SQLiteDataSource

    source = SQLiteDataSource("data/app.db")
    conn = source.get_connection()
    try:
        conn.execute("SELECT 1")
    finally:
        conn.close()
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from dbtask.logging_config import get_logger

logger = get_logger(__name__)


@runtime_checkable
class DataSource(Protocol):
    """
    Provider of ready-to-use DB-API connections.

    ``get_connection()`` returns ``None`` when no usable connection is
    available. Implementations must support concurrent acquisition from
    multiple threads.
    """

    def get_connection(self) -> Any | None: ...


@dataclass
class DataSourceConfig:
    """Configuration for SQLite connections."""

    # Timeouts
    connect_timeout: float = 30.0

    # SQLite settings
    check_same_thread: bool = False
    enable_wal: bool = True
    enable_foreign_keys: bool = True
    busy_timeout: int = 5000  # milliseconds
    cache_size: int = -2000  # 2MB page cache (negative = KB)

    def __post_init__(self):
        if self.connect_timeout <= 0:
            raise ValueError("connect_timeout must be > 0")
        if self.busy_timeout < 0:
            raise ValueError("busy_timeout must be >= 0")


class SQLiteDataSource:
    """
    Non-pooling SQLite data source.

    Every call to :meth:`get_connection` opens a fresh connection; closing it
    releases it. After :meth:`close` the source yields no connections.
    """

    def __init__(
        self,
        db_path: Path | str,
        config: DataSourceConfig | None = None,
    ):
        """
        Initialize the data source.

        Args:
            db_path: Path to SQLite database
            config: Connection configuration
        """
        self.db_path = Path(db_path)
        self.config = config or DataSourceConfig()

        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._lock = threading.Lock()
        self._closed = False
        self._stats = {
            "connections_opened": 0,
            "connections_refused": 0,
        }

    def get_connection(self) -> sqlite3.Connection | None:
        """Open a configured connection, or ``None`` once the source is closed."""
        with self._lock:
            if self._closed:
                self._stats["connections_refused"] += 1
                return None

        conn = sqlite3.connect(
            self.db_path,
            check_same_thread=self.config.check_same_thread,
            timeout=self.config.connect_timeout,
            # One statement per unit of work; each commits on its own
            isolation_level=None,
        )

        try:
            if self.config.enable_foreign_keys:
                conn.execute("PRAGMA foreign_keys = ON")

            if self.config.enable_wal:
                conn.execute("PRAGMA journal_mode = WAL")

            conn.execute(f"PRAGMA busy_timeout = {self.config.busy_timeout}")
            conn.execute(f"PRAGMA cache_size = {self.config.cache_size}")
        except sqlite3.Error:
            conn.close()
            raise

        # Row factory for dict-like access
        conn.row_factory = sqlite3.Row

        with self._lock:
            self._stats["connections_opened"] += 1

        logger.debug("sqlite_connection_opened", db_path=str(self.db_path))
        return conn

    @property
    def closed(self) -> bool:
        return self._closed

    def stats(self) -> dict[str, Any]:
        """Get data source statistics."""
        with self._lock:
            return {
                **self._stats,
                "closed": self._closed,
                "db_path": str(self.db_path),
            }

    def close(self):
        """Stop handing out connections."""
        with self._lock:
            if self._closed:
                return
            self._closed = True

        logger.info("sqlite_data_source_closed", db_path=str(self.db_path))

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
