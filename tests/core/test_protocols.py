"""Tests for PreparedWrite / BoundWrite and the Session protocol."""

import pytest

from tracestore.core.errors import MalformedSpanError
from tracestore.core.protocols import PreparedWrite, Session
from tracestore.storage.memory import InMemorySession
from tracestore.storage.sqlite import SqliteSession

INSERT = PreparedWrite("insert-x", "t", ("a", "b", "c"))


class TestBind:
    def test_binds_named_fields(self):
        bound = INSERT.bind(a=1, b="two")
        assert dict(bound.values) == {"a": 1, "b": "two"}
        assert bound.name == "insert-x"
        assert bound.table == "t"

    def test_none_values_are_left_unset(self):
        bound = INSERT.bind(a=1, b=None, c=0)
        assert "b" not in bound.values
        assert bound.values["c"] == 0

    def test_unknown_column_is_malformed(self):
        with pytest.raises(MalformedSpanError) as exc_info:
            INSERT.bind(a=1, z=2)
        assert exc_info.value.context.statement == "insert-x"
        assert "z" in str(exc_info.value)

    def test_values_read_only(self):
        bound = INSERT.bind(a=1)
        with pytest.raises(TypeError):
            bound.values["a"] = 2  # type: ignore[index]


class TestSessionProtocol:
    def test_in_memory_session_satisfies_protocol(self):
        assert isinstance(InMemorySession(), Session)

    def test_sqlite_session_satisfies_protocol(self):
        session = SqliteSession(":memory:")
        try:
            assert isinstance(session, Session)
        finally:
            session.close()
