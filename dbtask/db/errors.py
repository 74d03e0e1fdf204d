"""
Failure taxonomy for units of work.

Every failure surfaced by ``UnitOfWork.execute()`` is a
:class:`UnitOfWorkError` tagged with an :class:`ErrorKind`, so callers can
branch on ``error.kind`` instead of inspecting messages.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(Enum):
    """Classification of a unit of work failure."""

    CONNECTION = "connection"
    QUERY = "query"
    STATE = "state"
    CLEANUP = "cleanup"


class UnitOfWorkError(Exception):
    """Base class for classified unit of work failures."""

    kind: ErrorKind

    def __init__(self, message: str):
        self.message = message
        # Release failures that happened while this error was propagating
        self.cleanup_errors: list[CleanupError] = []
        super().__init__(message)


class ConnectionError(UnitOfWorkError):  # noqa: A001
    """The data source yielded no usable connection."""

    kind = ErrorKind.CONNECTION


class QueryError(UnitOfWorkError):
    """Preparing, binding, executing or reading the statement failed."""

    kind = ErrorKind.QUERY


class StateError(UnitOfWorkError):
    """Query logic broke the unit of work contract."""

    kind = ErrorKind.STATE


class CleanupError(UnitOfWorkError):
    """
    Releasing a resource failed.

    When raised on its own the query itself succeeded; ``result`` holds the
    value the query logic returned and ``errors`` every release failure.
    """

    kind = ErrorKind.CLEANUP

    def __init__(
        self,
        message: str,
        resource: str | None = None,
        result: Any = None,
        errors: list[CleanupError] | None = None,
    ):
        self.resource = resource
        self.result = result
        self.errors = errors or []
        super().__init__(message)


__all__ = [
    "CleanupError",
    "ConnectionError",
    "ErrorKind",
    "QueryError",
    "StateError",
    "UnitOfWorkError",
]
