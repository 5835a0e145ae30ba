from typing import Any, Protocol

import psycopg

from copi.utils.database import PostgresClient
from copi.utils.errors import StoreUnreachableError
from copi.utils.logger import get_logger

logger = get_logger(__name__)


class UserRepository(Protocol):
    """Read access to user records needed by the health and match-pool APIs."""

    async def ping(self) -> None: ...

    async def find_distinct_institutions(
        self, search: str | None, exclude_id: str, limit: int
    ) -> list[str]: ...

    async def find_distinct_departments(
        self, institution: str, search: str | None, exclude_id: str, limit: int
    ) -> list[str]: ...


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so *value* is matched literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class PostgresUserRepository:
    """UserRepository backed by the ``users`` table."""

    def __init__(self, client: PostgresClient) -> None:
        self._client = client

    async def ping(self) -> None:
        """Raises StoreUnreachableError unless ``SELECT 1`` round-trips."""
        row = await self._fetch("SELECT 1", {}, operation="ping")
        if not row or row[0][0] != 1:
            raise StoreUnreachableError(f"Unexpected liveness probe result: {row!r}")

    async def find_distinct_institutions(
        self, search: str | None, exclude_id: str, limit: int
    ) -> list[str]:
        """Distinct institutions in code-point order (`COLLATE "C"`), at most *limit*."""
        clauses = ["id::text <> %(exclude_id)s", "institution IS NOT NULL"]
        params: dict[str, Any] = {"exclude_id": exclude_id, "limit": limit}
        if search:
            clauses.append("institution ILIKE %(pattern)s ESCAPE '\\'")
            params["pattern"] = f"%{escape_like(search)}%"

        query = (
            "SELECT DISTINCT institution COLLATE \"C\" AS institution FROM users"
            f" WHERE {' AND '.join(clauses)}"
            " ORDER BY institution ASC LIMIT %(limit)s"
        )
        rows = await self._fetch(query, params, operation="find_distinct_institutions")
        return [row[0] for row in rows]

    async def find_distinct_departments(
        self, institution: str, search: str | None, exclude_id: str, limit: int
    ) -> list[str]:
        clauses = [
            "id::text <> %(exclude_id)s",
            "lower(institution) = lower(%(institution)s)",
            "department IS NOT NULL",
        ]
        params: dict[str, Any] = {
            "exclude_id": exclude_id,
            "institution": institution,
            "limit": limit,
        }
        if search:
            clauses.append("department ILIKE %(pattern)s ESCAPE '\\'")
            params["pattern"] = f"%{escape_like(search)}%"

        query = (
            "SELECT DISTINCT department COLLATE \"C\" AS department FROM users"
            f" WHERE {' AND '.join(clauses)}"
            " ORDER BY department ASC LIMIT %(limit)s"
        )
        rows = await self._fetch(query, params, operation="find_distinct_departments")
        return [row[0] for row in rows]

    async def _fetch(self, query: str, params: dict[str, Any], *, operation: str) -> list[tuple]:
        try:
            async with self._client.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchall()
        except psycopg.Error as e:
            # includes psycopg_pool.PoolTimeout
            logger.warning("users.%s failed: %s", operation, e)
            raise StoreUnreachableError() from e
