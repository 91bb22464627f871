from contextlib import contextmanager
from typing import Optional

import psycopg
from fastapi import Request
from psycopg.rows import dict_row

# psycopg3 connection pooling lives in a separate package.
from psycopg_pool import ConnectionPool

from .config import Settings
from .errors import QueryFailed


class Database:
    """
    Owns the connection pool for one app instance.

    Created at startup and handed to route handlers through `get_db`, so handlers
    never reach for a module-level pool and tests can pass a fake instead.
    """

    def __init__(
        self,
        conninfo: str,
        *,
        min_size: int = 1,
        max_size: int = 10,
        timeout: float = 30.0,
        ping_timeout: float = 2.0,
    ):
        self.ping_timeout = ping_timeout
        self._pool = ConnectionPool(
            conninfo=conninfo,
            min_size=min_size,
            max_size=max_size,
            timeout=timeout,
            kwargs={"row_factory": dict_row},
            open=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            settings.db_url,
            min_size=settings.db_pool_min,
            max_size=settings.db_pool_max,
            timeout=settings.db_pool_timeout,
            ping_timeout=settings.db_ping_timeout,
        )

    def open(self) -> None:
        # Don't block startup on the database; connections are made in the background.
        self._pool.open(wait=False)

    def close(self) -> None:
        self._pool.close()

    @contextmanager
    def connection(self, timeout: Optional[float] = None):
        # `with db.connection() as conn:`
        # - commit on success
        # - rollback on exception
        # - return connection to pool
        # Driver and pool failures surface as QueryFailed; other exceptions pass through.
        try:
            with self._pool.connection(timeout=timeout) as conn:
                with conn:
                    yield conn
        except psycopg.Error as exc:
            raise QueryFailed(detail=str(exc)) from exc

    def ping(self) -> bool:
        # Health checks must not wait out the full pool timeout when the database is down.
        with self.connection(timeout=self.ping_timeout) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1 AS ok")
                row = cur.fetchone()
        return bool(row and row["ok"] == 1)


def get_db(request: Request) -> Database:
    return request.app.state.db
