"""
Dispatch units of work to a thread pool.

Submitting a unit runs exactly the code path of ``unit.execute()``, on a
worker thread instead of the caller's. The runner adds no retries and no
locking; the data source is responsible for concurrent acquisition.

Example:
    from dbtask.db.runner import UnitOfWorkRunner

    with UnitOfWorkRunner(max_workers=4) as runner:
        futures = [runner.submit(unit) for unit in units]
        results = [f.result() for f in futures]
"""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from concurrent.futures import wait as wait_for_futures
from typing import TYPE_CHECKING, TypeVar

from dbtask.db.unit_of_work import UnitOfWork
from dbtask.logging_config import get_logger

if TYPE_CHECKING:
    from dbtask.config import Settings

logger = get_logger(__name__)

T = TypeVar("T")


class UnitOfWorkRunner:
    """Submit units of work to an executor."""

    def __init__(
        self,
        max_workers: int = 4,
        executor: Executor | None = None,
        thread_name_prefix: str = "dbtask",
    ):
        """
        Args:
            max_workers: Worker threads when the runner owns its executor
            executor: Existing executor to submit to (not shut down by the runner)
            thread_name_prefix: Name prefix for owned worker threads
        """
        if executor is None and max_workers < 1:
            raise ValueError("max_workers must be >= 1")

        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix=thread_name_prefix,
        )
        self.max_workers = max_workers

    @classmethod
    def from_settings(cls, settings: Settings) -> UnitOfWorkRunner:
        return cls(max_workers=settings.max_workers)

    def submit(self, unit: UnitOfWork[T]) -> Future[T]:
        """Schedule one unit; its future resolves to the query result."""
        logger.debug("unit_of_work_submitted", sql=unit.sql)
        return self._executor.submit(unit.execute)

    def run_all(self, units: Iterable[UnitOfWork[T]]) -> list[T]:
        """
        Run units concurrently and wait for all of them.

        Returns:
            Results in the order the units were given

        Raises:
            UnitOfWorkError: The first failure, in input order, once every
                unit has finished
        """
        futures: list[Future[T]] = []
        try:
            for unit in units:
                futures.append(self.submit(unit))
        finally:
            # Wait for every submitted unit so no execution outlives the call
            wait_for_futures(futures)
        return [future.result() for future in futures]

    def shutdown(self, wait: bool = True) -> None:
        if self._owns_executor:
            self._executor.shutdown(wait=wait)

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.shutdown()
