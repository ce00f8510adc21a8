"""MySQL adapter on pymysql.

pymysql is blocking, so each call runs in a worker thread. Each call still
owns exactly one connection from open to close.
"""
import asyncio
import logging
from typing import Any

import pymysql
import pymysql.cursors

from querydesk.engine.base import EngineAdapter, RawResult
from querydesk.models import ColumnDescriptor, ConnectionProfile, EngineKind, TableInfo

logger = logging.getLogger(__name__)

LIST_TABLES_SQL = """SELECT TABLE_NAME AS name, TABLE_ROWS AS approx_rows
FROM information_schema.TABLES
WHERE TABLE_SCHEMA = %s
ORDER BY TABLE_NAME"""


class MySQLAdapter(EngineAdapter):
    kind = EngineKind.MYSQL

    def _connect(self, profile: ConnectionProfile) -> pymysql.connections.Connection:
        params: dict[str, Any] = {
            "host": profile.host,
            "port": profile.port,
            "user": profile.username,
            "password": profile.password,
            "database": profile.database,
            "connect_timeout": self.connect_timeout,
            "charset": "utf8mb4",
            "cursorclass": pymysql.cursors.DictCursor,
            "autocommit": True,
        }
        if profile.use_tls:
            # Encrypt without CA verification
            params["ssl"] = {"check_hostname": False}
        return pymysql.connect(**params)

    def _ping_sync(self, profile: ConnectionProfile) -> None:
        conn = self._connect(profile)
        try:
            conn.ping(reconnect=False)
        finally:
            conn.close()

    def _run_sync(self, profile: ConnectionProfile, sql: str) -> RawResult:
        conn = self._connect(profile)
        try:
            with conn.cursor() as cursor:
                affected = cursor.execute(sql)
                if cursor.description is None:
                    return RawResult(affected_rows=affected)
                columns = [
                    ColumnDescriptor(name=desc[0], type_tag=str(desc[1]))
                    for desc in cursor.description
                ]
                rows = cursor.fetchall()
                return RawResult(rows=list(rows), columns=columns)
        finally:
            conn.close()

    def _list_tables_sync(self, profile: ConnectionProfile) -> list[TableInfo]:
        conn = self._connect(profile)
        try:
            with conn.cursor() as cursor:
                cursor.execute(LIST_TABLES_SQL, (profile.database,))
                rows = cursor.fetchall()
        finally:
            conn.close()
        return [
            TableInfo(
                name=r["name"],
                approx_row_count=int(r["approx_rows"]) if r["approx_rows"] is not None else None,
            )
            for r in rows
        ]

    async def ping(self, profile: ConnectionProfile) -> None:
        await asyncio.to_thread(self._ping_sync, profile)

    async def run(self, profile: ConnectionProfile, sql: str) -> RawResult:
        return await asyncio.to_thread(self._run_sync, profile, sql)

    async def list_tables(self, profile: ConnectionProfile) -> list[TableInfo]:
        return await asyncio.to_thread(self._list_tables_sync, profile)
