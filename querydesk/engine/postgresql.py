"""PostgreSQL adapter on psycopg's native async connection."""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import psycopg
from psycopg.rows import dict_row

from querydesk.engine.base import EngineAdapter, RawResult
from querydesk.models import ColumnDescriptor, ConnectionProfile, EngineKind, TableInfo

logger = logging.getLogger(__name__)

LIST_TABLES_SQL = """SELECT t.table_name AS name,
       pg_stat_get_live_tuples(c.oid) AS approx_rows
FROM information_schema.tables t
JOIN pg_class c ON c.relname = t.table_name
JOIN pg_namespace n ON n.oid = c.relnamespace AND n.nspname = t.table_schema
WHERE t.table_schema = 'public' AND t.table_type = 'BASE TABLE'
ORDER BY t.table_name"""


class PostgreSQLAdapter(EngineAdapter):
    kind = EngineKind.POSTGRESQL

    @asynccontextmanager
    async def connect(
        self, profile: ConnectionProfile
    ) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        conn = await psycopg.AsyncConnection.connect(
            host=profile.host,
            port=profile.port,
            dbname=profile.database,
            user=profile.username,
            password=profile.password,
            sslmode="require" if profile.use_tls else "disable",
            connect_timeout=self.connect_timeout,
            autocommit=True,
            row_factory=dict_row,
        )
        try:
            yield conn
        finally:
            await conn.close()

    async def ping(self, profile: ConnectionProfile) -> None:
        async with self.connect(profile) as conn:
            await conn.execute("SELECT 1")

    async def run(self, profile: ConnectionProfile, sql: str) -> RawResult:
        async with self.connect(profile) as conn:
            async with conn.cursor() as cur:
                await cur.execute(sql)
                if cur.description is None:
                    return RawResult(affected_rows=max(cur.rowcount, 0))
                columns = [
                    ColumnDescriptor(name=col.name, type_tag=str(col.type_code))
                    for col in cur.description
                ]
                rows = await cur.fetchall()
                return RawResult(rows=[dict(r) for r in rows], columns=columns)

    async def list_tables(self, profile: ConnectionProfile) -> list[TableInfo]:
        async with self.connect(profile) as conn:
            async with conn.cursor() as cur:
                await cur.execute(LIST_TABLES_SQL)
                rows = await cur.fetchall()
        return [
            TableInfo(
                name=r["name"],
                approx_row_count=int(r["approx_rows"]) if r["approx_rows"] is not None else None,
            )
            for r in rows
        ]
