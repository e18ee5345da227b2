"""
PostgreSQL access for the auth tables.

One psycopg2 ThreadedConnectionPool per database URL, shared by every
PostgresClient in the process. Sync routes run on FastAPI's threadpool, so
each query borrows its own connection and commits before handing it back.
A session lookup therefore always sees the latest token rotation.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)


def _adapt(value: Any) -> Any:
    """UUIDs go over the wire as text, dicts as JSONB."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, dict):
        return psycopg2.extras.Json(value)
    if isinstance(value, (list, tuple)):
        return type(value)(_adapt(v) for v in value)
    return value


def _adapt_params(params: Tuple | Dict | None) -> Tuple | Dict | None:
    if params is None:
        return None
    if isinstance(params, dict):
        return {key: _adapt(value) for key, value in params.items()}
    return tuple(_adapt(value) for value in params)


class PostgresClient:
    """
    Pooled PostgreSQL client returning rows as dicts.

    Usage:
        db = PostgresClient(database_url)
        row = db.execute_single("SELECT id FROM users WHERE email = lower(%s)", (email,))
        deleted = db.execute_returning("DELETE FROM user_sessions WHERE user_id = %s RETURNING id", (user_id,))
    """

    _pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()
    _jsonb_registered = False

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        """The shared pool for this URL, created on first use."""
        with self._pools_lock:
            pool = self._pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=30,
                )
                if not PostgresClient._jsonb_registered:
                    # device_info and security event details come back as dicts
                    psycopg2.extras.register_default_jsonb(globally=True)
                    PostgresClient._jsonb_registered = True
                self._pools[self._database_url] = pool
                logger.info(f"Connection pool created ({self._min_connections}-{self._max_connections} connections)")
            return pool

    @contextmanager
    def get_connection(self) -> Iterator[Any]:
        """Borrow a pooled connection; roll back if the caller fails."""
        pool = self._pool()
        conn = pool.getconn()
        if conn is None:
            raise RuntimeError("Could not get connection from pool")
        try:
            yield conn
        except Exception:
            conn.rollback()
            raise
        finally:
            pool.putconn(conn)

    def _run(self, query: str, params: Tuple | Dict | None, cursor_factory=None, fetch=None) -> Any:
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=cursor_factory) as cur:
                cur.execute(query, _adapt_params(params))
                result = fetch(cur)
                conn.commit()
                return result

    def execute(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Run a query and return every row. Statements without a result set return []."""
        return self._run(
            query,
            params,
            cursor_factory=psycopg2.extras.RealDictCursor,
            fetch=lambda cur: [dict(row) for row in cur.fetchall()] if cur.description else [],
        )

    def execute_single(self, query: str, params: Tuple | Dict | None = None) -> Dict[str, Any] | None:
        """First row or None."""
        rows = self.execute(query, params)
        return rows[0] if rows else None

    def execute_scalar(self, query: str, params: Tuple | Dict | None = None) -> Any:
        """First column of the first row, or None."""

        def first_value(cur):
            row = cur.fetchone()
            return row[0] if row else None

        return self._run(query, params, fetch=first_value)

    def execute_returning(self, query: str, params: Tuple | Dict | None = None) -> List[Dict[str, Any]]:
        """Run INSERT/UPDATE/DELETE ... RETURNING and return the affected rows."""
        return self._run(
            query,
            params,
            cursor_factory=psycopg2.extras.RealDictCursor,
            fetch=lambda cur: [dict(row) for row in cur.fetchall()],
        )

    def close(self) -> None:
        """Close this URL's pool."""
        with self._pools_lock:
            pool = self._pools.pop(self._database_url, None)
        if pool is not None:
            pool.closeall()
            logger.info("Connection pool closed")

    @classmethod
    def close_all_pools(cls) -> None:
        with cls._pools_lock:
            pools, cls._pools = list(cls._pools.values()), {}
        for pool in pools:
            pool.closeall()
