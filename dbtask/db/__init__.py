"""
Database module for dbtask.

Provides:
- Units of work (acquire, query, release)
- Prepared statements with generated-key retrieval
- Data sources and a thread pool runner
"""

from __future__ import annotations

from .datasource import DataSource, DataSourceConfig, SQLiteDataSource
from .errors import (
    CleanupError,
    ConnectionError,
    ErrorKind,
    QueryError,
    StateError,
    UnitOfWorkError,
)
from .runner import UnitOfWorkRunner
from .statement import PreparedStatement
from .unit_of_work import UnitOfWork, UnitOfWorkState

__all__ = [
    "CleanupError",
    "ConnectionError",
    "DataSource",
    "DataSourceConfig",
    "ErrorKind",
    "PreparedStatement",
    "QueryError",
    "SQLiteDataSource",
    "StateError",
    "UnitOfWork",
    "UnitOfWorkError",
    "UnitOfWorkRunner",
    "UnitOfWorkState",
]
