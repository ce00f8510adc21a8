"""Unit tests for LIMIT/OFFSET injection and window validation."""
import pytest

from querydesk.utils.errors import InvalidPaginationParameter
from querydesk.utils.pagination import (
    add_pagination,
    append_limit,
    has_limit_clause,
    validate_pagination,
)


class TestAddPagination:
    def test_appends_exactly_one_limit(self):
        paged = add_pagination("SELECT * FROM t", limit=10, offset=0)
        assert paged.applied
        assert paged.sql == "SELECT * FROM t LIMIT 10"
        assert paged.sql.count("LIMIT") == 1

    def test_existing_limit_left_untouched(self):
        sql = "SELECT * FROM t LIMIT 5"
        paged = add_pagination(sql, limit=10, offset=0)
        assert not paged.applied
        assert paged.sql == sql

    def test_existing_limit_any_case(self):
        sql = "select * from t limit 5"
        assert add_pagination(sql, limit=10).sql == sql

    def test_offset_appended_when_positive(self):
        paged = add_pagination("SELECT * FROM t", limit=10, offset=20)
        assert paged.sql == "SELECT * FROM t LIMIT 10 OFFSET 20"

    def test_trailing_semicolons_stripped(self):
        paged = add_pagination("SELECT * FROM t ;\n;", limit=3)
        assert paged.sql == "SELECT * FROM t LIMIT 3"

    def test_trailing_line_comment_dropped(self):
        paged = add_pagination("SELECT * FROM t -- all rows", limit=3)
        assert paged.sql == "SELECT * FROM t LIMIT 3"

    @pytest.mark.parametrize(
        "sql",
        [
            "SELECT * FROM t; -- all rows",
            "SELECT * FROM t; /* all rows */",
            "SELECT * FROM t ;\n-- one\n;  -- two\n",
        ],
    )
    def test_semicolon_before_trailing_comment_stripped(self, sql):
        paged = add_pagination(sql, limit=10)
        assert paged.sql == "SELECT * FROM t LIMIT 10"

    def test_comment_markers_inside_literal_kept(self):
        paged = add_pagination("SELECT '--' AS dashes FROM t;", limit=3)
        assert paged.sql == "SELECT '--' AS dashes FROM t LIMIT 3"

    def test_cte_is_paginated(self):
        paged = add_pagination("WITH c AS (SELECT 1 AS x) SELECT * FROM c", limit=2)
        assert paged.applied
        assert paged.sql.endswith("LIMIT 2")

    @pytest.mark.parametrize("sql", ["SHOW TABLES", "EXPLAIN SELECT 1", "UPDATE t SET a = 1"])
    def test_non_select_statements_not_paginated(self, sql):
        paged = add_pagination(sql, limit=10)
        assert not paged.applied
        assert paged.sql == sql

    def test_validates_before_appending(self):
        with pytest.raises(InvalidPaginationParameter):
            add_pagination("SELECT 1", limit=0)


class TestValidatePagination:
    @pytest.mark.parametrize("limit", [1, 500, 1000])
    def test_limit_bounds_accepted(self, limit):
        validate_pagination(limit, 0)

    @pytest.mark.parametrize("limit", [0, -1, 1001])
    def test_limit_out_of_range(self, limit):
        with pytest.raises(InvalidPaginationParameter, match="between 1 and 1000"):
            validate_pagination(limit, 0)

    def test_negative_offset(self):
        with pytest.raises(InvalidPaginationParameter, match="non-negative"):
            validate_pagination(10, -1)

    @pytest.mark.parametrize("limit,offset", [("10", 0), (10.0, 0), (True, 0), (10, 1.5), (10, None)])
    def test_non_integers_rejected(self, limit, offset):
        with pytest.raises(InvalidPaginationParameter):
            validate_pagination(limit, offset)

    def test_error_code(self):
        with pytest.raises(InvalidPaginationParameter) as exc_info:
            validate_pagination(0, 0)
        assert exc_info.value.code == "INVALID_PAGINATION"
        assert exc_info.value.status_code == 400


class TestHelpers:
    def test_has_limit_clause_whole_word(self):
        assert has_limit_clause("SELECT 1 LIMIT 1")
        assert not has_limit_clause("SELECT limits FROM quotas")

    def test_append_limit_skips_range_check(self):
        # The executor asks for limit + 1 rows, which may exceed the public maximum
        assert append_limit("SELECT 1", 1001).sql == "SELECT 1 LIMIT 1001"
