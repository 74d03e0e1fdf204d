"""Tests for dbtask.db.runner."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from dbtask.config import Settings
from dbtask.db.datasource import SQLiteDataSource
from dbtask.db.errors import ConnectionError, QueryError
from dbtask.db.runner import UnitOfWorkRunner
from dbtask.db.unit_of_work import UnitOfWork
from fakes import FakeConnection, FakeDataSource

INSERT_ITEM = "INSERT INTO items(label) VALUES(?)"


def _insert(label):
    def query(unit):
        stmt = unit.prepare(keygen=True)
        stmt.execute((label,))
        return stmt.generated_keys()[0]

    return query


@pytest.fixture
def source(tmp_path):
    ds = SQLiteDataSource(tmp_path / "items.db")
    conn = ds.get_connection()
    conn.execute("CREATE TABLE items (id INTEGER PRIMARY KEY, label TEXT)")
    conn.close()
    yield ds
    ds.close()


def test_submit_runs_on_worker_thread():
    seen = []

    def query(unit):
        seen.append(threading.current_thread().name)
        return "ok"

    conn = FakeConnection()
    with UnitOfWorkRunner(max_workers=1, thread_name_prefix="uow") as runner:
        future = runner.submit(UnitOfWork(FakeDataSource(conn), "SELECT 1", query))
        assert future.result() == "ok"

    assert seen[0].startswith("uow")
    assert conn.close_calls == 1


@pytest.mark.slow
def test_run_all_inserts_concurrently(source):
    labels = [f"item-{i}" for i in range(8)]
    units = [UnitOfWork(source, INSERT_ITEM, _insert(label)) for label in labels]

    with UnitOfWorkRunner(max_workers=4) as runner:
        keys = runner.run_all(units)

    assert sorted(keys) == list(range(1, 9))
    assert len(set(keys)) == 8

    def count(unit):
        unit.result = unit.prepare().execute_query()
        return unit.result.fetchone()[0]

    assert UnitOfWork(source, "SELECT COUNT(*) FROM items", count).execute() == 8


def test_run_all_raises_first_failure_after_all_finish():
    good = FakeConnection()

    def fail(unit):
        raise QueryError("bad")

    units = [
        UnitOfWork(FakeDataSource(FakeConnection()), "SELECT 1", fail),
        UnitOfWork(FakeDataSource(None), "SELECT 1", lambda u: None),
        UnitOfWork(FakeDataSource(good), "SELECT 1", lambda u: "fine"),
    ]

    with UnitOfWorkRunner(max_workers=3) as runner:
        with pytest.raises(QueryError, match="bad"):
            runner.run_all(units)

    assert good.close_calls == 1


def test_connection_error_surfaces_through_future():
    with UnitOfWorkRunner(max_workers=1) as runner:
        future = runner.submit(UnitOfWork(FakeDataSource(None), "SELECT 1", lambda u: 1))
        with pytest.raises(ConnectionError):
            future.result()


def test_external_executor_is_not_shut_down():
    executor = ThreadPoolExecutor(max_workers=1)
    try:
        with UnitOfWorkRunner(executor=executor) as runner:
            runner.submit(
                UnitOfWork(FakeDataSource(FakeConnection()), "SELECT 1", lambda u: 1)
            ).result()
        assert executor.submit(lambda: 2).result() == 2
    finally:
        executor.shutdown()


def test_from_settings_uses_max_workers():
    runner = UnitOfWorkRunner.from_settings(Settings(max_workers=2))
    try:
        assert runner.max_workers == 2
    finally:
        runner.shutdown()


def test_invalid_max_workers():
    with pytest.raises(ValueError):
        UnitOfWorkRunner(max_workers=0)


class _RefusingExecutor(ThreadPoolExecutor):
    """Accepts the first submission, refuses the rest."""

    def __init__(self):
        super().__init__(max_workers=1)
        self.accepted = 0

    def submit(self, fn, /, *args, **kwargs):
        if self.accepted:
            raise RuntimeError("executor refused work")
        self.accepted += 1
        return super().submit(fn, *args, **kwargs)


def test_run_all_waits_for_submitted_units_when_submit_fails():
    finished = []
    conn = FakeConnection()

    def slow(unit):
        time.sleep(0.2)
        finished.append(True)
        return "done"

    units = [
        UnitOfWork(FakeDataSource(conn), "SELECT 1", slow),
        UnitOfWork(FakeDataSource(FakeConnection()), "SELECT 1", lambda u: 1),
    ]

    executor = _RefusingExecutor()
    try:
        with pytest.raises(RuntimeError, match="executor refused work"):
            UnitOfWorkRunner(executor=executor).run_all(units)

        assert finished == [True]
        assert conn.close_calls == 1
    finally:
        executor.shutdown()
