"""Tests for PostgresClient - pooled psycopg2 access."""

from unittest.mock import MagicMock, Mock
from uuid import UUID

import psycopg2
import pytest
from psycopg2.extras import Json

from clients.postgres_client import PostgresClient

DATABASE_URL = "postgresql://portal@localhost/ward_portal_test"
TEST_USER_ID = UUID("00000000-0000-0000-0000-000000000001")


@pytest.fixture
def connection():
    conn = MagicMock()
    cursor = conn.cursor.return_value.__enter__.return_value
    cursor.description = [("id",)]
    cursor.fetchall.return_value = [{"id": 1}]
    cursor.fetchone.return_value = (1,)
    return conn


@pytest.fixture
def pool(connection, monkeypatch):
    pool = Mock()
    pool.getconn.return_value = connection
    monkeypatch.setattr(psycopg2.pool, "ThreadedConnectionPool", Mock(return_value=pool))
    monkeypatch.setattr(psycopg2.extras, "register_default_jsonb", Mock())
    yield pool
    PostgresClient._pools.clear()


@pytest.fixture
def db(pool):
    return PostgresClient(DATABASE_URL)


def executed(connection):
    return connection.cursor.return_value.__enter__.return_value.execute.call_args.args


class TestConnectionPool:
    """Connection pool lifecycle."""

    def test_pool_shared_per_url(self, pool):
        PostgresClient(DATABASE_URL)
        PostgresClient(DATABASE_URL)

        assert psycopg2.pool.ThreadedConnectionPool.call_count == 1

    def test_connection_returned_after_query(self, db, pool, connection):
        db.execute("SELECT 1")

        pool.putconn.assert_called_once_with(connection)

    def test_close_removes_pool(self, db, pool):
        db.close()

        pool.closeall.assert_called_once()
        assert DATABASE_URL not in PostgresClient._pools

    def test_no_connection_available(self, db, pool):
        pool.getconn.return_value = None

        with pytest.raises(RuntimeError, match="Could not get connection"):
            db.execute("SELECT 1")


class TestExecuteMethods:
    """Query execution methods."""

    def test_execute_returns_rows_and_commits(self, db, connection):
        assert db.execute("SELECT id FROM users") == [{"id": 1}]
        connection.commit.assert_called_once()

    def test_execute_without_result_set(self, db, connection):
        connection.cursor.return_value.__enter__.return_value.description = None

        assert db.execute("UPDATE users SET name = 'x'") == []
        connection.commit.assert_called_once()

    def test_execute_single_no_rows_returns_none(self, db, connection):
        connection.cursor.return_value.__enter__.return_value.fetchall.return_value = []

        assert db.execute_single("SELECT 1 WHERE false") is None

    def test_execute_scalar_returns_first_value(self, db):
        assert db.execute_scalar("SELECT 1") == 1

    def test_execute_returning_commits(self, db, connection):
        rows = db.execute_returning("DELETE FROM user_sessions RETURNING id")

        assert rows == [{"id": 1}]
        connection.commit.assert_called_once()

    def test_error_rolls_back(self, db, connection):
        connection.cursor.return_value.__enter__.return_value.execute.side_effect = (
            psycopg2.OperationalError("server closed the connection")
        )

        with pytest.raises(psycopg2.OperationalError):
            db.execute("SELECT 1")

        connection.rollback.assert_called_once()
        connection.commit.assert_not_called()


class TestParamConversion:
    """UUIDs and dicts are adapted before reaching psycopg2."""

    def test_uuid_becomes_string(self, db, connection):
        db.execute("SELECT * FROM users WHERE id = %s", (TEST_USER_ID,))

        assert executed(connection)[1] == (str(TEST_USER_ID),)

    def test_dict_becomes_jsonb(self, db, connection):
        db.execute_returning("INSERT INTO t (data) VALUES (%s) RETURNING id", ({"user_agent": "Firefox"},))

        [param] = executed(connection)[1]
        assert isinstance(param, Json)
        assert param.adapted == {"user_agent": "Firefox"}

    def test_named_params(self, db, connection):
        db.execute("SELECT * FROM users WHERE id = %(id)s", {"id": TEST_USER_ID})

        assert executed(connection)[1] == {"id": str(TEST_USER_ID)}
