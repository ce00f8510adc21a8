"""PostgreSQL-backed credential store.

Uses an async psycopg connection pool with retry on checkout, so the server
survives the metadata database restarting underneath it.

The "exactly one active connection" rule is enforced twice: activation runs
clear-then-set in one transaction, and a partial unique index rejects any
second active row.
"""
import asyncio
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from enum import Enum
from typing import Any, AsyncGenerator, Optional

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from querydesk.config import config
from querydesk.models import (
    ConnectionProfile,
    QueryRecord,
    QueryResultRecord,
    SavedQuery,
    Session,
    UserAccount,
    utcnow,
)
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import ConnectionNotFound, UsernameTaken

logger = logging.getLogger(__name__)

SCHEMA_DDL = [
    """CREATE TABLE IF NOT EXISTS qd_connections (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        engine_kind TEXT NOT NULL,
        host TEXT NOT NULL,
        port INTEGER NOT NULL,
        database TEXT NOT NULL,
        username TEXT NOT NULL,
        password TEXT NOT NULL DEFAULT '',
        use_tls BOOLEAN NOT NULL DEFAULT FALSE,
        is_active BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    """CREATE UNIQUE INDEX IF NOT EXISTS qd_connections_single_active
        ON qd_connections (is_active) WHERE is_active""",
    """CREATE TABLE IF NOT EXISTS qd_queries (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        sql_text TEXT NOT NULL,
        connection_id TEXT,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    """CREATE TABLE IF NOT EXISTS qd_query_results (
        id TEXT PRIMARY KEY,
        query_id TEXT,
        rows JSONB NOT NULL,
        columns JSONB NOT NULL,
        execution_time_millis INTEGER NOT NULL,
        row_count INTEGER NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    """CREATE INDEX IF NOT EXISTS qd_query_results_query_id
        ON qd_query_results (query_id, created_at DESC)""",
    """CREATE TABLE IF NOT EXISTS qd_users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        role TEXT NOT NULL,
        is_active BOOLEAN NOT NULL DEFAULT TRUE,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    """CREATE TABLE IF NOT EXISTS qd_sessions (
        id TEXT PRIMARY KEY,
        user_id TEXT NOT NULL,
        token TEXT NOT NULL UNIQUE,
        expires_at TIMESTAMPTZ NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
    """CREATE TABLE IF NOT EXISTS qd_saved_queries (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        sql_text TEXT NOT NULL,
        created_by TEXT NOT NULL,
        role_at_save TEXT NOT NULL,
        created_at TIMESTAMPTZ NOT NULL DEFAULT now()
    )""",
]

_IMMUTABLE_FIELDS = {"id", "created_at"}


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    return value


class PostgresStore(CredentialStore):
    """Credential store on a PostgreSQL database reached through ``dsn``."""

    def __init__(self, dsn: str):
        self._dsn = dsn
        self._pool: Optional[AsyncConnectionPool] = None

    async def initialize(self) -> None:
        self._pool = AsyncConnectionPool(
            conninfo=self._dsn,
            min_size=config.store_pool_min,
            max_size=config.store_pool_max,
            open=False,
            kwargs={"row_factory": dict_row, "autocommit": True},
            check=AsyncConnectionPool.check_connection,
            reconnect_timeout=30,
        )
        await self._pool.open()
        async with self.connection() as conn:
            async with conn.transaction():
                for statement in SCHEMA_DDL:
                    await conn.execute(statement)
        logger.info("PostgreSQL credential store initialized")

    async def close(self) -> None:
        if self._pool:
            await self._pool.close()
            logger.info("PostgreSQL credential store closed")

    @asynccontextmanager
    async def connection(self) -> AsyncGenerator[psycopg.AsyncConnection, None]:
        """Check out a pooled connection, retrying with exponential backoff."""
        if not self._pool:
            raise RuntimeError("Store not initialized. Call initialize() first.")

        conn = None
        last_error = None
        for attempt in range(config.store_retry_attempts):
            try:
                conn = await self._pool.getconn()
                break
            except (psycopg.OperationalError, OSError) as e:
                last_error = e
                delay = min(
                    config.store_retry_base_delay * (2**attempt),
                    config.store_retry_max_delay,
                )
                logger.warning(
                    f"Store connection attempt {attempt + 1}/{config.store_retry_attempts} "
                    f"failed. Retrying in {delay:.1f}s..."
                )
                await asyncio.sleep(delay)

        if conn is None:
            raise ConnectionError(
                f"Failed to connect to the credential store after "
                f"{config.store_retry_attempts} attempts. Last error: {last_error}"
            )

        try:
            yield conn
        finally:
            await self._pool.putconn(conn)

    # --- Generic row helpers ---

    async def _fetch_all(self, query, params: tuple = ()) -> list[dict[str, Any]]:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return list(await cur.fetchall())

    async def _fetch_one(self, query, params: tuple = ()) -> Optional[dict[str, Any]]:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return await cur.fetchone()

    async def _execute(self, query, params: tuple = ()) -> int:
        async with self.connection() as conn:
            async with conn.cursor() as cur:
                await cur.execute(query, params)
                return cur.rowcount

    async def _insert(self, table: str, values: dict[str, Any]) -> dict[str, Any]:
        columns = list(values)
        query = sql.SQL("INSERT INTO {} ({}) VALUES ({}) RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(map(sql.Identifier, columns)),
            sql.SQL(", ").join(sql.Placeholder() * len(columns)),
        )
        return await self._fetch_one(query, tuple(_plain(values[c]) for c in columns))

    async def _update(
        self, table: str, row_id: str, changes: dict[str, Any]
    ) -> Optional[dict[str, Any]]:
        columns = [c for c in changes if c not in _IMMUTABLE_FIELDS]
        if not columns:
            return await self._fetch_one(
                sql.SQL("SELECT * FROM {} WHERE id = %s").format(sql.Identifier(table)),
                (row_id,),
            )
        query = sql.SQL("UPDATE {} SET {} WHERE id = %s RETURNING *").format(
            sql.Identifier(table),
            sql.SQL(", ").join(
                sql.SQL("{} = %s").format(sql.Identifier(c)) for c in columns
            ),
        )
        params = tuple(_plain(changes[c]) for c in columns) + (row_id,)
        return await self._fetch_one(query, params)

    async def _delete(self, table: str, row_id: str) -> bool:
        query = sql.SQL("DELETE FROM {} WHERE id = %s").format(sql.Identifier(table))
        return await self._execute(query, (row_id,)) > 0

    # --- Connection profiles ---

    async def list_connections(self) -> list[ConnectionProfile]:
        rows = await self._fetch_all("SELECT * FROM qd_connections ORDER BY created_at")
        return [ConnectionProfile.model_validate(r) for r in rows]

    async def get_connection(self, connection_id: str) -> Optional[ConnectionProfile]:
        row = await self._fetch_one(
            "SELECT * FROM qd_connections WHERE id = %s", (connection_id,)
        )
        return ConnectionProfile.model_validate(row) if row else None

    async def create_connection(self, profile: ConnectionProfile) -> ConnectionProfile:
        values = profile.model_dump()
        values["is_active"] = False
        row = await self._insert("qd_connections", values)
        return ConnectionProfile.model_validate(row)

    async def update_connection(
        self, connection_id: str, changes: dict[str, Any]
    ) -> Optional[ConnectionProfile]:
        changes = {k: v for k, v in changes.items() if k != "is_active"}
        row = await self._update("qd_connections", connection_id, changes)
        return ConnectionProfile.model_validate(row) if row else None

    async def delete_connection(self, connection_id: str) -> bool:
        return await self._delete("qd_connections", connection_id)

    async def activate_connection(self, connection_id: str) -> ConnectionProfile:
        async with self.connection() as conn:
            async with conn.transaction():
                async with conn.cursor() as cur:
                    await cur.execute(
                        "SELECT id FROM qd_connections WHERE id = %s FOR UPDATE",
                        (connection_id,),
                    )
                    if await cur.fetchone() is None:
                        raise ConnectionNotFound()
                    await cur.execute(
                        "UPDATE qd_connections SET is_active = FALSE "
                        "WHERE is_active AND id <> %s",
                        (connection_id,),
                    )
                    await cur.execute(
                        "UPDATE qd_connections SET is_active = TRUE "
                        "WHERE id = %s RETURNING *",
                        (connection_id,),
                    )
                    row = await cur.fetchone()
        return ConnectionProfile.model_validate(row)

    async def get_active_connection(self) -> Optional[ConnectionProfile]:
        row = await self._fetch_one("SELECT * FROM qd_connections WHERE is_active")
        return ConnectionProfile.model_validate(row) if row else None

    # --- Query records and results ---

    async def list_queries(self, connection_id: Optional[str] = None) -> list[QueryRecord]:
        if connection_id:
            rows = await self._fetch_all(
                "SELECT * FROM qd_queries WHERE connection_id = %s ORDER BY created_at",
                (connection_id,),
            )
        else:
            rows = await self._fetch_all("SELECT * FROM qd_queries ORDER BY created_at")
        return [QueryRecord.model_validate(r) for r in rows]

    async def get_query(self, query_id: str) -> Optional[QueryRecord]:
        row = await self._fetch_one("SELECT * FROM qd_queries WHERE id = %s", (query_id,))
        return QueryRecord.model_validate(row) if row else None

    async def create_query(self, record: QueryRecord) -> QueryRecord:
        row = await self._insert("qd_queries", record.model_dump())
        return QueryRecord.model_validate(row)

    async def update_query(
        self, query_id: str, changes: dict[str, Any]
    ) -> Optional[QueryRecord]:
        changes = {**changes, "updated_at": utcnow()}
        row = await self._update("qd_queries", query_id, changes)
        return QueryRecord.model_validate(row) if row else None

    async def delete_query(self, query_id: str) -> bool:
        return await self._delete("qd_queries", query_id)

    async def save_query_result(self, result: QueryResultRecord) -> QueryResultRecord:
        encoded = result.model_dump(mode="json", by_alias=True)
        values = result.model_dump(exclude={"rows", "columns"})
        values["rows"] = Jsonb(encoded["rows"])
        values["columns"] = Jsonb(encoded["columns"])
        row = await self._insert("qd_query_results", values)
        return QueryResultRecord.model_validate(row)

    async def get_latest_query_result(self, query_id: str) -> Optional[QueryResultRecord]:
        row = await self._fetch_one(
            "SELECT * FROM qd_query_results WHERE query_id = %s "
            "ORDER BY created_at DESC LIMIT 1",
            (query_id,),
        )
        return QueryResultRecord.model_validate(row) if row else None

    # --- Users ---

    async def list_users(self) -> list[UserAccount]:
        rows = await self._fetch_all("SELECT * FROM qd_users ORDER BY created_at")
        return [UserAccount.model_validate(r) for r in rows]

    async def count_users(self) -> int:
        row = await self._fetch_one("SELECT count(*) AS n FROM qd_users")
        return int(row["n"])

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        row = await self._fetch_one("SELECT * FROM qd_users WHERE id = %s", (user_id,))
        return UserAccount.model_validate(row) if row else None

    async def get_user_by_username(self, username: str) -> Optional[UserAccount]:
        row = await self._fetch_one(
            "SELECT * FROM qd_users WHERE username = %s", (username,)
        )
        return UserAccount.model_validate(row) if row else None

    async def create_user(self, user: UserAccount) -> UserAccount:
        try:
            row = await self._insert("qd_users", user.model_dump())
        except psycopg.errors.UniqueViolation as e:
            raise UsernameTaken() from e
        return UserAccount.model_validate(row)

    async def update_user(
        self, user_id: str, changes: dict[str, Any]
    ) -> Optional[UserAccount]:
        changes = {k: v for k, v in changes.items() if k != "username"}
        changes["updated_at"] = utcnow()
        row = await self._update("qd_users", user_id, changes)
        return UserAccount.model_validate(row) if row else None

    async def delete_user(self, user_id: str) -> bool:
        return await self._delete("qd_users", user_id)

    # --- Sessions ---

    async def create_session(self, session: Session) -> Session:
        row = await self._insert("qd_sessions", session.model_dump())
        return Session.model_validate(row)

    async def get_session_by_token(self, token: str) -> Optional[Session]:
        row = await self._fetch_one("SELECT * FROM qd_sessions WHERE token = %s", (token,))
        return Session.model_validate(row) if row else None

    async def delete_session(self, token: str) -> bool:
        return await self._execute("DELETE FROM qd_sessions WHERE token = %s", (token,)) > 0

    async def delete_sessions_for_user(self, user_id: str) -> int:
        return await self._execute("DELETE FROM qd_sessions WHERE user_id = %s", (user_id,))

    async def delete_expired_sessions(self, now: datetime) -> int:
        return await self._execute("DELETE FROM qd_sessions WHERE expires_at <= %s", (now,))

    # --- Saved queries ---

    async def list_saved_queries(self) -> list[SavedQuery]:
        rows = await self._fetch_all(
            "SELECT * FROM qd_saved_queries ORDER BY created_at DESC"
        )
        return [SavedQuery.model_validate(r) for r in rows]

    async def get_saved_query(self, saved_id: str) -> Optional[SavedQuery]:
        row = await self._fetch_one(
            "SELECT * FROM qd_saved_queries WHERE id = %s", (saved_id,)
        )
        return SavedQuery.model_validate(row) if row else None

    async def create_saved_query(self, saved: SavedQuery) -> SavedQuery:
        row = await self._insert("qd_saved_queries", saved.model_dump())
        return SavedQuery.model_validate(row)

    async def delete_saved_query(self, saved_id: str) -> bool:
        return await self._delete("qd_saved_queries", saved_id)
