"""
Prepared statements over DB-API cursors.

A :class:`PreparedStatement` binds one statement template to one cursor of
an open connection. The ``keygen`` flag decides whether keys generated by
the server (auto-increment primary keys on INSERT) can be read back after
execution; it changes nothing else about the statement.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

from dbtask.db.errors import QueryError

# Statements that can produce server-generated keys
_INSERT_VERBS = ("INSERT", "REPLACE")


def _is_insert(sql: str) -> bool:
    words = sql.split(None, 1)
    return bool(words) and words[0].upper() in _INSERT_VERBS


class PreparedStatement:
    """
    One statement template bound to a cursor.

    Example:
        stmt = PreparedStatement(conn, "INSERT INTO users(name) VALUES(?)",
                                 keygen=True)
        stmt.execute(("alice",))
        user_id = stmt.generated_keys()[0]
        stmt.close()
    """

    def __init__(self, connection: Any, sql: str, keygen: bool = False):
        self.sql = sql
        self.keygen = keygen
        self._inserts = _is_insert(sql)
        self._cursor = connection.cursor()
        self._keys: list[Any] = []
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def cursor(self) -> Any:
        return self._cursor

    def _check_open(self) -> None:
        if self._closed:
            raise QueryError("Statement is closed")

    def _collect_key(self) -> None:
        # lastrowid is connection-wide in some drivers; only trust it when
        # this statement inserted rows
        if not self.keygen or not self._inserts or self._cursor.rowcount <= 0:
            return
        key = getattr(self._cursor, "lastrowid", None)
        if key is not None:
            self._keys.append(key)

    def execute(self, params: Sequence[Any] | dict[str, Any] = ()) -> int:
        """
        Execute the statement once.

        Args:
            params: Values for the statement placeholders

        Returns:
            Number of affected rows (-1 when the driver cannot tell)
        """
        self._check_open()
        self._keys = []
        self._cursor.execute(self.sql, params)
        self._collect_key()
        return self._cursor.rowcount

    def execute_query(self, params: Sequence[Any] | dict[str, Any] = ()) -> Any:
        """
        Execute the statement and return the cursor for reading rows.

        Store the returned cursor on ``UnitOfWork.result`` so it is released
        with the unit.
        """
        self.execute(params)
        return self._cursor

    def executemany(self, seq_of_params: Iterable[Sequence[Any] | dict[str, Any]]) -> int:
        """
        Execute the statement once per parameter set.

        Only the key the driver reports for the batch (if any) is kept;
        DB-API leaves ``lastrowid`` after ``executemany`` driver-defined.

        Returns:
            Total number of affected rows
        """
        self._check_open()
        self._keys = []
        self._cursor.executemany(self.sql, seq_of_params)
        self._collect_key()
        return self._cursor.rowcount

    def generated_keys(self) -> list[Any]:
        """
        Keys generated by the last execution.

        Empty when the last execution inserted no rows.

        Raises:
            QueryError: If the statement was prepared without keygen
        """
        if not self.keygen:
            raise QueryError("Generated keys were not requested for this statement")
        return list(self._keys)

    def close(self) -> None:
        """Close the underlying cursor. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        self._cursor.close()

    def __repr__(self) -> str:
        state = "closed" if self._closed else "open"
        return f"PreparedStatement({self.sql!r}, keygen={self.keygen}, {state})"
