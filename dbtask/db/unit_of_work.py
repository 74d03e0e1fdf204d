"""
Single-use database units of work.

A :class:`UnitOfWork` acquires one connection from a data source, hands
control to query logic that prepares and runs one statement, and releases
the result cursor, the statement and the connection on every exit path.

Query logic is supplied either as a callable taking the unit, or by
overriding :meth:`UnitOfWork.query` in a subclass.

Example:
    from dbtask.db import SQLiteDataSource, UnitOfWork

    def insert_user(unit: UnitOfWork[int]) -> int:
        stmt = unit.prepare(keygen=True)
        stmt.execute(("alice",))
        return stmt.generated_keys()[0]

    source = SQLiteDataSource("data/app.db")
    unit = UnitOfWork(source, "INSERT INTO users(name) VALUES(?)", insert_user)

    # Synchronously, on this thread
    user_id = unit.execute()

    # Or as a task on an executor
    future = executor.submit(
        UnitOfWork(source, "INSERT INTO users(name) VALUES(?)", insert_user)
    )
"""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from dbtask.db.datasource import DataSource
from dbtask.db.errors import (
    CleanupError,
    ConnectionError,
    QueryError,
    StateError,
    UnitOfWorkError,
)
from dbtask.db.statement import PreparedStatement
from dbtask.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

# Release order: children before their parent connection
_RESOURCES = ("result", "statement", "connection")


class UnitOfWorkState(Enum):
    """
    Lifecycle of one execution.

    IDLE -> CONNECTING -> CONNECTED -> EXECUTING -> SUCCEEDED -> RELEASED,
    with FAILED reachable from CONNECTING and EXECUTING. RELEASED is
    terminal and follows every started execution.
    """

    IDLE = "idle"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    EXECUTING = "executing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    RELEASED = "released"


class UnitOfWork(Generic[T]):
    """
    Acquire, query, release.

    Attributes set during an execution and reset by the release step:
        connection: Connection acquired from the data source
        statement: Statement created by :meth:`prepare`
        result: Cursor the query logic reads rows from, if any

    Instances are meant for exactly one execution.
    """

    def __init__(
        self,
        data_source: DataSource,
        sql: str,
        query_fn: Callable[[UnitOfWork[T]], T] | None = None,
    ):
        """
        Args:
            data_source: Caller-owned provider of connections
            sql: Statement template, in the driver's placeholder syntax
            query_fn: Query logic; required unless ``query`` is overridden
        """
        if query_fn is None and type(self).query is UnitOfWork.query:
            raise TypeError(
                f"{type(self).__name__} needs a query_fn or a query() override"
            )

        self._data_source = data_source
        self._sql = sql
        self._query_fn = query_fn

        self.connection: Any = None
        self.statement: PreparedStatement | None = None
        self.result: Any = None
        self.state = UnitOfWorkState.IDLE

    @property
    def sql(self) -> str:
        return self._sql

    @property
    def data_source(self) -> DataSource:
        return self._data_source

    def query(self) -> T:
        """Query logic. Runs with ``connection`` open."""
        return self._query_fn(self)

    def prepare(self, keygen: bool = False) -> PreparedStatement:
        """
        Prepare the unit's statement on the open connection.

        Args:
            keygen: Allow server-generated keys to be read back after execution

        Returns:
            The prepared statement, also stored on ``statement``

        Raises:
            StateError: If no connection is open or a statement is already open
        """
        if self.connection is None:
            raise StateError("No connection is open")
        if self.statement is not None and not self.statement.closed:
            raise StateError("Statement is already prepared")

        self.statement = PreparedStatement(self.connection, self._sql, keygen=keygen)
        logger.debug("statement_prepared", sql=self._sql, keygen=keygen)
        return self.statement

    def execute(self) -> T:
        """
        Run the unit to completion on the calling thread.

        Returns:
            The value returned by the query logic

        Raises:
            ConnectionError: If the data source yields no usable connection
            QueryError: If the query logic fails
            StateError: If the query logic breaks the prepare contract
            CleanupError: If the query succeeded but a resource failed to close
        """
        failure: UnitOfWorkError | None = None
        cleanup_errors: list[CleanupError] = []

        try:
            value = self._run()
        except UnitOfWorkError as exc:
            self.state = UnitOfWorkState.FAILED
            failure = exc
            raise
        finally:
            cleanup_errors = self.release()
            if failure is not None:
                failure.cleanup_errors.extend(cleanup_errors)

        if cleanup_errors:
            raise CleanupError(
                f"Query succeeded but {len(cleanup_errors)} resource(s) failed to close",
                resource=cleanup_errors[0].resource,
                result=value,
                errors=cleanup_errors,
            ) from cleanup_errors[0].__cause__

        return value

    __call__ = execute

    def _run(self) -> T:
        self.state = UnitOfWorkState.CONNECTING
        try:
            connection = self._data_source.get_connection()
        except Exception as exc:
            logger.warning("connection_unavailable", sql=self._sql, error=str(exc))
            raise ConnectionError("Could not connect to database") from exc

        if connection is None:
            logger.warning("connection_unavailable", sql=self._sql)
            raise ConnectionError("Could not connect to database")

        self.connection = connection
        self.state = UnitOfWorkState.CONNECTED
        logger.debug("connection_acquired", sql=self._sql, unit=type(self).__name__)

        self.state = UnitOfWorkState.EXECUTING
        try:
            value = self.query()
        except UnitOfWorkError as exc:
            logger.debug("query_failed", sql=self._sql, kind=exc.kind.value)
            raise
        except Exception as exc:
            logger.debug("query_failed", sql=self._sql, error=repr(exc))
            raise QueryError(str(exc) or type(exc).__name__) from exc

        self.state = UnitOfWorkState.SUCCEEDED
        return value

    def release(self) -> list[CleanupError]:
        """
        Close the cursor, the statement and the connection, skipping any
        that were never acquired. Every step runs even if an earlier one fails.

        Returns:
            One CleanupError per resource that failed to close
        """
        # The statement owns its cursor
        if self.statement is not None and self.result is self.statement.cursor:
            self.result = None

        errors: list[CleanupError] = []
        for name in _RESOURCES:
            resource = getattr(self, name)
            if resource is None:
                continue
            setattr(self, name, None)
            try:
                resource.close()
            except Exception as exc:
                logger.warning(
                    "cleanup_failed", resource=name, sql=self._sql, exc_info=exc
                )
                error = CleanupError(f"Failed to close {name}: {exc}", resource=name)
                error.__cause__ = exc
                errors.append(error)

        if self.state is not UnitOfWorkState.IDLE:
            self.state = UnitOfWorkState.RELEASED
            logger.debug(
                "unit_of_work_released", sql=self._sql, cleanup_failures=len(errors)
            )
        return errors

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._sql!r}, state={self.state.value})"
