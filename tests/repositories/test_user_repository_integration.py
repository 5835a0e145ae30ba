import os
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterator

import psycopg
import pytest
from psycopg import sql
from psycopg.conninfo import conninfo_to_dict, make_conninfo

from copi.repositories.user_repository import PostgresUserRepository
from copi.utils.database import PostgresClient

TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")

pytestmark = pytest.mark.skipif(
    not TEST_DATABASE_URL, reason="TEST_DATABASE_URL is not set; skipping PostgreSQL tests"
)

CALLER_WITHOUT_INSTITUTION = str(uuid.uuid4())
STANFORD_USER = str(uuid.uuid4())

SEED_USERS: list[tuple[str, str | None, str | None]] = [
    (CALLER_WITHOUT_INSTITUTION, None, None),
    (STANFORD_USER, "Stanford", "Genetics"),
    (str(uuid.uuid4()), "MIT", "Biology"),
    (str(uuid.uuid4()), "MIT", "Chemistry"),
    (str(uuid.uuid4()), "MIT", "Biology"),
    (str(uuid.uuid4()), "mit", "Biology"),
    (str(uuid.uuid4()), "Yale", None),
    (str(uuid.uuid4()), "100% Research", "Lab_A"),
    (str(uuid.uuid4()), "100 Research", "LabXA"),
    *[(str(uuid.uuid4()), f"University {i:02d}", None) for i in range(1, 26)],
]


def _create_temp_database(base_dsn: str) -> tuple[str, str, str]:
    params = conninfo_to_dict(base_dsn)
    temp_db_name = f"test_copi_{uuid.uuid4().hex}"

    admin_params = params.copy()
    admin_params["dbname"] = "postgres"
    admin_conninfo = make_conninfo(**admin_params)

    with psycopg.connect(admin_conninfo, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute(sql.SQL("CREATE DATABASE {}").format(sql.Identifier(temp_db_name)))

    temp_params = params.copy()
    temp_params["dbname"] = temp_db_name
    return make_conninfo(**temp_params), admin_conninfo, temp_db_name


def _drop_database(admin_conninfo: str, database_name: str) -> None:
    with psycopg.connect(admin_conninfo, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT pg_terminate_backend(pid) "
                "FROM pg_stat_activity "
                "WHERE datname = %s AND pid <> pg_backend_pid()",
                (database_name,),
            )
            cur.execute(sql.SQL("DROP DATABASE IF EXISTS {}").format(sql.Identifier(database_name)))


@pytest.fixture()
def seeded_conninfo() -> Iterator[str]:
    assert TEST_DATABASE_URL
    temp_conninfo, admin_conninfo, temp_db_name = _create_temp_database(TEST_DATABASE_URL)
    try:
        with psycopg.connect(temp_conninfo, autocommit=True) as conn:
            with conn.cursor() as cur:
                cur.execute(
                    "CREATE TABLE users (id UUID PRIMARY KEY, institution TEXT, department TEXT)"
                )
                cur.executemany(
                    "INSERT INTO users (id, institution, department) VALUES (%s, %s, %s)",
                    SEED_USERS,
                )
        yield temp_conninfo
    finally:
        _drop_database(admin_conninfo, temp_db_name)


@asynccontextmanager
async def open_repository(conninfo: str) -> AsyncIterator[PostgresUserRepository]:
    client = PostgresClient(conninfo, max_connections=2)
    await client.open()
    try:
        yield PostgresUserRepository(client)
    finally:
        await client.close()


def _expected_institutions(exclude_id: str) -> list[str]:
    values = {inst for uid, inst, _ in SEED_USERS if uid != exclude_id and inst is not None}
    return sorted(values)


@pytest.mark.asyncio
async def test_ping(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        await repository.ping()


@pytest.mark.asyncio
async def test_institutions_distinct_ordered_and_capped(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        result = await repository.find_distinct_institutions(
            search=None, exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )

    assert len(result) == 20
    assert len(set(result)) == 20
    assert result == _expected_institutions(CALLER_WITHOUT_INSTITUTION)[:20]
    assert result[:4] == ["100 Research", "100% Research", "MIT", "Stanford"]


@pytest.mark.asyncio
async def test_institutions_exclude_caller_by_identity(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        result = await repository.find_distinct_institutions(
            search="stan", exclude_id=STANFORD_USER, limit=20
        )
    assert result == []


@pytest.mark.asyncio
async def test_institutions_accept_non_uuid_caller(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        result = await repository.find_distinct_institutions(
            search="yale", exclude_id="not-a-uuid", limit=20
        )
    assert result == ["Yale"]


@pytest.mark.asyncio
async def test_institutions_search_is_case_insensitive(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        result = await repository.find_distinct_institutions(
            search="mIT", exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
    assert result == ["MIT", "mit"]


@pytest.mark.asyncio
async def test_institutions_search_matches_percent_literally(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        result = await repository.find_distinct_institutions(
            search="100%", exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
    assert result == ["100% Research"]


@pytest.mark.asyncio
async def test_departments_distinct_and_skip_nulls(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        mit = await repository.find_distinct_departments(
            institution="mit", search=None, exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
        yale = await repository.find_distinct_departments(
            institution="Yale", search=None, exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
    assert mit == ["Biology", "Chemistry"]
    assert yale == []


@pytest.mark.asyncio
async def test_departments_search_matches_underscore_literally(seeded_conninfo):
    async with open_repository(seeded_conninfo) as repository:
        with_underscore = await repository.find_distinct_departments(
            institution="100% Research", search="b_", exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
        other = await repository.find_distinct_departments(
            institution="100 Research", search="b_", exclude_id=CALLER_WITHOUT_INSTITUTION, limit=20
        )
    assert with_underscore == ["Lab_A"]
    assert other == []
