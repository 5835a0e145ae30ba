import os
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import psycopg
from psycopg.conninfo import conninfo_to_dict, make_conninfo
from psycopg_pool import AsyncConnectionPool

from copi.utils.config import get_config, get_secret
from copi.utils.logger import get_logger

logger = get_logger(__name__)


def build_dsn() -> str:
    """DSN from ``COPI_DATABASE_DSN`` or assembled from the ``database`` config section."""
    dsn = os.getenv("COPI_DATABASE_DSN")
    if dsn:
        return dsn
    return make_conninfo(
        host=get_config("database.host"),
        port=get_config("database.port", coerce=int),
        dbname=get_config("database.dbname"),
        user=get_config("database.user"),
        password=get_secret("database_password"),
        connect_timeout=get_config("database.connect_timeout", coerce=int),
        application_name="copi-api",
    )


class PostgresClient:
    """Lightweight wrapper around a psycopg async connection pool."""

    def __init__(
        self,
        dsn: str,
        *,
        min_connections: int = 1,
        max_connections: int = 10,
        timeout: float = 5.0,
        kwargs: Optional[dict[str, object]] = None,
    ) -> None:
        if not dsn:
            raise ValueError("PostgresClient requires a PostgreSQL DSN")

        pool_kwargs: dict[str, object] = {"autocommit": True}
        if kwargs:
            pool_kwargs.update(kwargs)

        self._dsn = dsn
        self._pool = AsyncConnectionPool(
            conninfo=self._dsn,
            min_size=max(1, min_connections),
            max_size=max(1, max_connections),
            timeout=timeout,
            kwargs=pool_kwargs,
            open=False,
        )

    @classmethod
    def from_config(cls) -> "PostgresClient":
        return cls(
            build_dsn(),
            min_connections=get_config("database.pool.min_size", coerce=int),
            max_connections=get_config("database.pool.max_size", coerce=int),
            timeout=get_config("database.connect_timeout", coerce=float),
        )

    @property
    def dsn(self) -> str:
        return self._dsn

    @property
    def safe_dsn(self) -> str:
        try:
            params = conninfo_to_dict(self._dsn)
        except psycopg.ProgrammingError:
            return "<unparseable dsn>"

        if params.get("password") is not None:
            params["password"] = "***"
        return make_conninfo(**params)

    async def open(self) -> None:
        # wait=False: startup proceeds while the database is down.
        await self._pool.open(wait=False)
        logger.info("Opened connection pool for %s", self.safe_dsn)

    @asynccontextmanager
    async def connection(self) -> AsyncIterator[psycopg.AsyncConnection]:
        async with self._pool.connection() as conn:
            yield conn

    @asynccontextmanager
    async def cursor(self) -> AsyncIterator[psycopg.AsyncCursor]:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                yield cur

    async def close(self) -> None:
        await self._pool.close()
        logger.info("Closed connection pool for %s", self.safe_dsn)


__all__ = ["PostgresClient", "build_dsn"]
