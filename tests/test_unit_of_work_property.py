from hypothesis import given
from hypothesis import strategies as st

from dbtask.db.errors import CleanupError, ConnectionError, QueryError, UnitOfWorkError
from dbtask.db.unit_of_work import UnitOfWork, UnitOfWorkState
from fakes import FakeConnection, FakeDataSource


@given(
    connected=st.booleans(),
    prepares=st.booleans(),
    opens_result=st.booleans(),
    query_fails=st.booleans(),
    connection_close_fails=st.booleans(),
    cursor_close_fails=st.booleans(),
)
def test_every_acquired_resource_is_released_once(
    connected,
    prepares,
    opens_result,
    query_fails,
    connection_close_fails,
    cursor_close_fails,
):
    conn = FakeConnection(
        fail_on_close=connection_close_fails,
        cursor_fails_on_close=cursor_close_fails,
    )
    source = FakeDataSource(conn if connected else None)
    called = []

    def query(unit):
        called.append(True)
        if prepares:
            unit.prepare()
        if opens_result:
            unit.result = unit.connection.cursor("result")
        if query_fails:
            raise RuntimeError("query failed")
        return "done"

    unit = UnitOfWork(source, "SELECT 1", query)
    try:
        outcome = unit.execute()
    except UnitOfWorkError as exc:
        outcome = exc

    assert unit.connection is None and unit.statement is None and unit.result is None
    assert unit.state is UnitOfWorkState.RELEASED

    if not connected:
        assert isinstance(outcome, ConnectionError)
        assert called == []
        return

    assert conn.close_calls == 1
    assert all(cursor.close_calls == 1 for cursor in conn.cursors)

    cleanup_failed = connection_close_fails or (prepares and cursor_close_fails)
    if query_fails:
        assert isinstance(outcome, QueryError)
        assert bool(outcome.cleanup_errors) == cleanup_failed
    elif cleanup_failed:
        assert isinstance(outcome, CleanupError)
        assert outcome.result == "done"
    else:
        assert outcome == "done"
