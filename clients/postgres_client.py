"""
PostgreSQL access over a psycopg2 ThreadedConnectionPool.

Rows come back as plain dicts (RealDictCursor), JSONB columns as Python
objects. There is no ambient tenant context: every tenant query filters by
the workspace_id its caller passes in.

Single statements can run through the client directly, each in its own
short transaction. Multi-step mutations open transaction() and run every
statement through the yielded Transaction, which commits when the block
completes and rolls back when it raises.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Sequence

import psycopg2
import psycopg2.extras
import psycopg2.pool

logger = logging.getLogger(__name__)

Params = Sequence[Any] | Mapping[str, Any] | None
Row = Dict[str, Any]

psycopg2.extras.register_default_jsonb(globally=True)


class _Queries:
    """Result shapes shared by the client and its transactions."""

    def _run(self, query: str, params: Params) -> List[Row]:
        raise NotImplementedError

    def execute(self, query: str, params: Params = None) -> List[Row]:
        """All rows as dicts; [] for statements that return nothing."""
        return self._run(query, params)

    def execute_single(self, query: str, params: Params = None) -> Row | None:
        rows = self._run(query, params)
        return rows[0] if rows else None

    def execute_scalar(self, query: str, params: Params = None) -> Any:
        """First column of the first row, or None."""
        rows = self._run(query, params)
        return next(iter(rows[0].values())) if rows else None

    def execute_returning(self, query: str, params: Params = None) -> List[Row]:
        """INSERT/UPDATE/DELETE ... RETURNING rows."""
        return self._run(query, params)


class Transaction(_Queries):
    """Statements on one pooled connection; committed by PostgresClient.transaction()."""

    def __init__(self, conn):
        self._conn = conn

    def _run(self, query: str, params: Params) -> List[Row]:
        with self._conn.cursor(cursor_factory=psycopg2.extras.RealDictCursor) as cur:
            cur.execute(query, params)
            if cur.description is None:
                return []
            return [dict(row) for row in cur.fetchall()]


class PostgresClient(_Queries):
    """
    Usage:
        db = PostgresClient(database_url)

        rows = db.execute("SELECT * FROM invoices WHERE workspace_id = %s", (workspace_id,))

        with db.transaction() as tx:
            payment = tx.execute_returning("INSERT INTO payments ... RETURNING *", (...))[0]
            tx.execute("UPDATE invoices SET balance = %s WHERE id = %s", (...))
    """

    def __init__(self, database_url: str, minconn: int = 2, maxconn: int = 20, connect_timeout: int = 30):
        self._pool = psycopg2.pool.ThreadedConnectionPool(
            minconn=minconn,
            maxconn=maxconn,
            dsn=database_url,
            connect_timeout=connect_timeout,
            application_name="invoicing",
        )
        logger.info(f"PostgreSQL pool ready ({minconn}-{maxconn} connections)")

    @contextmanager
    def transaction(self) -> Iterator[Transaction]:
        """
        Unit of work on one connection.

        Commits if the block completes; rolls back and re-raises if it
        raises. A connection that broke mid-transaction is discarded
        instead of going back to the pool.
        """
        try:
            conn = self._pool.getconn()
        except psycopg2.pool.PoolError as e:
            raise RuntimeError(f"No database connection available: {e}") from e

        try:
            yield Transaction(conn)
            conn.commit()
        except BaseException:
            if not conn.closed:
                conn.rollback()
            raise
        finally:
            self._pool.putconn(conn, close=bool(conn.closed))

    def _run(self, query: str, params: Params) -> List[Row]:
        with self.transaction() as tx:
            return tx._run(query, params)

    def close(self) -> None:
        self._pool.closeall()
        logger.info("PostgreSQL pool closed")
