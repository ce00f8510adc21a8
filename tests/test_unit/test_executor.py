"""Unit tests for the query executor: pagination, timing, failure translation."""
from decimal import Decimal

import psycopg
import pymysql
import pytest

from conftest import FakeAdapter, make_profile
from querydesk.engine.executor import QueryExecutor
from querydesk.models import EngineKind, TableInfo
from querydesk.utils.errors import (
    InvalidPaginationParameter,
    QueryExecutionFailed,
    SchemaFetchFailed,
    UnsupportedEngine,
)
from querydesk.utils.pagination import PaginationParams


def _executor(adapter):
    return QueryExecutor(adapters={EngineKind.POSTGRESQL: adapter})


# ── hasMoreRows boundary ──────────────────────────────────────────────

class TestHasMoreRows:
    async def test_exactly_limit_rows(self, profile):
        adapter = FakeAdapter(rows=[{"id": i} for i in range(10)])
        result = await _executor(adapter).execute(
            profile, "SELECT * FROM t", PaginationParams(limit=10)
        )
        assert result.has_more_rows is False
        assert result.row_count == 10
        assert result.pagination_applied

    async def test_limit_plus_one_rows(self, profile):
        adapter = FakeAdapter(rows=[{"id": i} for i in range(11)])
        result = await _executor(adapter).execute(
            profile, "SELECT * FROM t", PaginationParams(limit=10)
        )
        assert result.has_more_rows is True
        assert len(result.rows) == 10
        assert result.row_count == 10
        assert result.rows[-1] == {"id": 9}

    async def test_requests_one_extra_row(self, profile):
        adapter = FakeAdapter(rows=[{"id": 1}])
        await _executor(adapter).execute(
            profile, "SELECT * FROM t;", PaginationParams(limit=10, offset=30)
        )
        assert adapter.statements == ["SELECT * FROM t LIMIT 11 OFFSET 30"]

    async def test_max_limit_fetches_one_more(self, profile):
        adapter = FakeAdapter(rows=[{"id": i} for i in range(1001)])
        result = await _executor(adapter).execute(
            profile, "SELECT * FROM t", PaginationParams(limit=1000)
        )
        assert adapter.statements == ["SELECT * FROM t LIMIT 1001"]
        assert result.has_more_rows is True
        assert result.row_count == 1000

    async def test_manual_limit_not_double_paginated(self, profile):
        adapter = FakeAdapter(rows=[{"id": i} for i in range(50)])
        result = await _executor(adapter).execute(
            profile, "SELECT * FROM t LIMIT 5", PaginationParams(limit=10)
        )
        assert adapter.statements == ["SELECT * FROM t LIMIT 5"]
        assert result.pagination_applied is False
        assert result.has_more_rows is False
        assert result.row_count == 5

    async def test_no_pagination_returns_everything(self, profile, sample_rows):
        adapter = FakeAdapter(rows=sample_rows)
        result = await _executor(adapter).execute(profile, "SELECT * FROM t")
        assert adapter.statements == ["SELECT * FROM t"]
        assert result.row_count == len(sample_rows)
        assert result.has_more_rows is False


# ── Validation before I/O ─────────────────────────────────────────────

class TestPaginationValidation:
    @pytest.mark.parametrize("limit,offset", [(0, 0), (1001, 0), (10, -5)])
    async def test_invalid_window_never_reaches_driver(self, profile, limit, offset):
        adapter = FakeAdapter(rows=[{"id": 1}])
        with pytest.raises(InvalidPaginationParameter):
            await _executor(adapter).execute(
                profile, "SELECT 1", PaginationParams(limit=limit, offset=offset)
            )
        assert adapter.statements == []


# ── Result shape ──────────────────────────────────────────────────────

class TestResultShape:
    async def test_columns_and_timing(self, profile):
        adapter = FakeAdapter(rows=[{"id": 1, "name": "a"}])
        result = await _executor(adapter).execute(profile, "SELECT id, name FROM t")
        assert [c.name for c in result.columns] == ["id", "name"]
        assert result.columns[0].type_tag == "23"
        assert isinstance(result.execution_time_millis, int)
        assert result.execution_time_millis >= 0

    async def test_serializes_with_camel_case(self, profile):
        adapter = FakeAdapter(rows=[{"id": 1}])
        result = await _executor(adapter).execute(profile, "SELECT id FROM t")
        body = result.model_dump(mode="json", by_alias=True)
        assert set(body) == {
            "rows",
            "columns",
            "executionTimeMillis",
            "rowCount",
            "hasMoreRows",
            "paginationApplied",
        }
        assert body["columns"] == [{"name": "id", "type": "23"}]

    async def test_non_result_statement_reports_affected_rows(self, profile):
        adapter = FakeAdapter(affected_rows=7)
        result = await _executor(adapter).execute(
            profile, "UPDATE t SET a = 1", PaginationParams(limit=10)
        )
        assert result.rows == []
        assert result.row_count == 7
        assert result.pagination_applied is False

    async def test_values_are_normalized(self, profile):
        adapter = FakeAdapter(rows=[{"price": Decimal("10.50")}])
        result = await _executor(adapter).execute(profile, "SELECT price FROM t")
        assert result.rows == [{"price": "10.50"}]


# ── Failure translation ───────────────────────────────────────────────

class TestFailures:
    async def test_driver_error_becomes_execution_failed(self, profile):
        adapter = FakeAdapter(error=psycopg.OperationalError("relation \"t\" does not exist"))
        with pytest.raises(QueryExecutionFailed, match='relation "t" does not exist') as exc_info:
            await _executor(adapter).execute(profile, "SELECT * FROM t")
        assert exc_info.value.status_code == 400
        assert isinstance(exc_info.value.__cause__, psycopg.OperationalError)

    async def test_mysql_error_carries_errno(self, profile):
        adapter = FakeAdapter(
            error=pymysql.err.ProgrammingError(1146, "Table 'shop.t' doesn't exist")
        )
        with pytest.raises(QueryExecutionFailed, match=r"\(1146\) Table 'shop.t'"):
            await _executor(adapter).execute(profile, "SELECT * FROM t")

    async def test_unsupported_engine(self, profile):
        executor = QueryExecutor(adapters={})
        with pytest.raises(UnsupportedEngine):
            await executor.execute(profile, "SELECT 1")

    async def test_test_connection_never_raises(self, profile):
        adapter = FakeAdapter(error=OSError("connection refused"))
        assert await _executor(adapter).test_connection(profile) is False
        assert adapter.pings == 1

    async def test_test_connection_unsupported_engine_is_false(self):
        executor = QueryExecutor(adapters={})
        assert await executor.test_connection(make_profile(engine_kind=EngineKind.MYSQL)) is False

    async def test_test_connection_ok(self, profile):
        assert await _executor(FakeAdapter()).test_connection(profile) is True


# ── Schema ────────────────────────────────────────────────────────────

class TestSchema:
    async def test_lists_tables(self, profile):
        adapter = FakeAdapter(tables=[TableInfo(name="orders", approx_row_count=3)])
        schema = await _executor(adapter).get_schema(profile)
        assert schema.model_dump(by_alias=True) == {
            "tables": [{"name": "orders", "approxRowCount": 3}]
        }

    async def test_failure_becomes_schema_fetch_failed(self, profile):
        adapter = FakeAdapter(error=TimeoutError("timed out"))
        with pytest.raises(SchemaFetchFailed, match="Failed to fetch schema"):
            await _executor(adapter).get_schema(profile)
