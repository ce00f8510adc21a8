"""Query execution engine: dispatch, pagination, timing, canonical results."""
import logging
import time
from typing import Optional

from querydesk.config import config
from querydesk.engine.base import EngineAdapter
from querydesk.engine.mysql import MySQLAdapter
from querydesk.engine.postgresql import PostgreSQLAdapter
from querydesk.models import ConnectionProfile, EngineKind, ExecutionResult, SchemaInfo
from querydesk.utils.errors import (
    QueryDeskError,
    QueryExecutionFailed,
    SchemaFetchFailed,
    UnsupportedEngine,
    describe_driver_error,
)
from querydesk.utils.formatting import normalize_row
from querydesk.utils.pagination import PaginationParams, append_limit, validate_pagination

logger = logging.getLogger(__name__)


def default_adapters() -> dict[EngineKind, EngineAdapter]:
    timeout = config.connect_timeout_seconds
    return {
        EngineKind.MYSQL: MySQLAdapter(connect_timeout=timeout),
        EngineKind.POSTGRESQL: PostgreSQLAdapter(connect_timeout=timeout),
    }


class QueryExecutor:
    """Runs SQL against a ConnectionProfile and returns an ExecutionResult.

    No connection outlives a call: concurrent calls against one profile are
    fully independent.
    """

    def __init__(self, adapters: Optional[dict[EngineKind, EngineAdapter]] = None):
        self._adapters = adapters if adapters is not None else default_adapters()

    def adapter_for(self, profile: ConnectionProfile) -> EngineAdapter:
        adapter = self._adapters.get(profile.engine_kind)
        if adapter is None:
            raise UnsupportedEngine(
                f"Unsupported database type: {profile.engine_kind.value}"
            )
        return adapter

    async def test_connection(self, profile: ConnectionProfile) -> bool:
        """Liveness check. Never raises; any failure is reported as False."""
        try:
            await self.adapter_for(profile).ping(profile)
            return True
        except Exception as e:
            logger.warning(
                f"Connection test failed for {profile.name} "
                f"({profile.engine_kind.value}://{profile.host}:{profile.port}): "
                f"{describe_driver_error(e)}"
            )
            return False

    async def execute(
        self,
        profile: ConnectionProfile,
        sql: str,
        pagination: Optional[PaginationParams] = None,
    ) -> ExecutionResult:
        """Execute ``sql`` and canonicalize the driver's result.

        With ``pagination``, one extra row is requested to detect whether more
        rows exist; the result is cut back to ``limit``. A statement that
        already has a LIMIT is run as written.

        Raises:
            InvalidPaginationParameter: Bad window, raised before any I/O.
            QueryExecutionFailed: The driver failed; carries its message.
        """
        adapter = self.adapter_for(profile)

        statement = sql
        applied = False
        if pagination is not None:
            validate_pagination(pagination.limit, pagination.offset)
            paged = append_limit(sql, pagination.limit + 1, pagination.offset)
            statement, applied = paged.sql, paged.applied

        start = time.perf_counter()
        try:
            raw = await adapter.run(profile, statement)
        except QueryDeskError:
            raise
        except Exception as e:
            message = describe_driver_error(e)
            logger.error(
                f"Query failed on {profile.name} ({profile.engine_kind.value}): "
                f"{message} sql={sql[:100]!r}"
            )
            raise QueryExecutionFailed(message) from e
        elapsed_ms = int(round((time.perf_counter() - start) * 1000))

        if not raw.has_result_set:
            return ExecutionResult(
                execution_time_millis=elapsed_ms,
                row_count=raw.affected_rows or 0,
                pagination_applied=applied,
            )

        rows = [normalize_row(r) for r in raw.rows]
        has_more = False
        if applied and len(rows) > pagination.limit:
            has_more = True
            rows = rows[: pagination.limit]

        logger.debug(
            f"Query on {profile.name} returned {len(rows)} row(s) in {elapsed_ms}ms"
        )
        return ExecutionResult(
            rows=rows,
            columns=raw.columns,
            execution_time_millis=elapsed_ms,
            row_count=len(rows),
            has_more_rows=has_more,
            pagination_applied=applied,
        )

    async def get_schema(self, profile: ConnectionProfile) -> SchemaInfo:
        adapter = self.adapter_for(profile)
        try:
            tables = await adapter.list_tables(profile)
        except Exception as e:
            message = describe_driver_error(e)
            logger.error(f"Schema fetch failed on {profile.name}: {message}")
            raise SchemaFetchFailed(f"Failed to fetch schema: {message}") from e
        logger.info(f"Fetched schema for {profile.name}: {len(tables)} table(s)")
        return SchemaInfo(tables=tables)
