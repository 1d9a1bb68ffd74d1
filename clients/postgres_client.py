"""
PostgreSQL client for the billing database.

Uses psycopg2 with a ThreadedConnectionPool shared per database URL. Rows
come back as plain dicts, JSONB columns as Python objects and TEXT[] columns
as lists. Writes run inside `transaction()`, which commits once at the end
and rolls back if anything raises.
"""

import logging
import threading
from contextlib import contextmanager
from enum import Enum
from typing import Any, Dict, Iterator, List, Sequence, Tuple
from uuid import UUID

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Tuple | Dict | None


def _to_db(value: Any) -> Any:
    """Adapt ids and enums for psycopg2, recursing into containers."""
    if isinstance(value, UUID):
        return str(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return [_to_db(v) for v in value]
    if isinstance(value, tuple):
        return tuple(_to_db(v) for v in value)
    if isinstance(value, dict):
        return {k: _to_db(v) for k, v in value.items()}
    return value


class PostgresClient:
    """
    Pooled access to the billing database.

    Usage:
        db = PostgresClient(database_url)
        invoices = db.execute("SELECT * FROM invoices WHERE status = %s", ("open",))
    """

    # Pools are shared by every client pointing at the same URL
    _connection_pools: Dict[str, psycopg2.pool.ThreadedConnectionPool] = {}
    _pools_lock = threading.RLock()
    _jsonb_registered = False

    def __init__(self, database_url: str, min_connections: int = 2, max_connections: int = 20):
        self._database_url = database_url
        self._min_connections = min_connections
        self._max_connections = max_connections
        self._pool()

    def _pool(self) -> psycopg2.pool.ThreadedConnectionPool:
        with self._pools_lock:
            pool = self._connection_pools.get(self._database_url)
            if pool is None:
                pool = psycopg2.pool.ThreadedConnectionPool(
                    minconn=self._min_connections,
                    maxconn=self._max_connections,
                    dsn=self._database_url,
                    connect_timeout=30,
                )
                if not PostgresClient._jsonb_registered:
                    psycopg2.extras.register_default_jsonb(globally=True)
                    PostgresClient._jsonb_registered = True
                self._connection_pools[self._database_url] = pool
                logger.info(
                    f"Billing database pool created ({self._min_connections}-{self._max_connections} connections)"
                )
            return pool

    @contextmanager
    def get_connection(self):
        """Borrow a pooled connection; rolled back if the caller raises."""
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

    @contextmanager
    def transaction(self) -> Iterator[psycopg2.extras.RealDictCursor]:
        """Dict cursor whose statements commit together on exit."""
        with self.get_connection() as conn:
            with conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
                yield cur
            conn.commit()

    def execute(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute query, return list of row dicts. Empty list if no results."""
        with self.transaction() as cur:
            cur.execute(query, _to_db(params))
            if cur.description:
                return [dict(row) for row in cur.fetchall()]
            return []

    def execute_single(self, query: str, params: Params = None) -> Dict[str, Any] | None:
        """Execute query, return first row or None."""
        results = self.execute(query, params)
        return results[0] if results else None

    def execute_returning(self, query: str, params: Params = None) -> List[Dict[str, Any]]:
        """Execute INSERT/UPDATE with RETURNING, return the returned rows."""
        with self.transaction() as cur:
            cur.execute(query, _to_db(params))
            return [dict(row) for row in cur.fetchall()]

    def execute_many_returning(self, query: str, params_list: Sequence[Tuple]) -> List[Dict[str, Any]]:
        """
        Run one INSERT ... RETURNING per params tuple in a single transaction.

        Either every row is written or none is.
        """
        rows: List[Dict[str, Any]] = []
        with self.transaction() as cur:
            for params in params_list:
                cur.execute(query, _to_db(params))
                rows.extend(dict(row) for row in cur.fetchall())
        return rows

    def close(self) -> None:
        """Close this URL's connection pool."""
        with self._pools_lock:
            pool = self._connection_pools.pop(self._database_url, None)
            if pool is not None:
                pool.closeall()

    @classmethod
    def close_all_pools(cls) -> None:
        with cls._pools_lock:
            for pool in cls._connection_pools.values():
                pool.closeall()
            cls._connection_pools.clear()
