"""Pagination injection for ad hoc SQL."""
import re
from dataclasses import dataclass

import sqlglot
from pydantic import BaseModel
from sqlglot.tokens import TokenType

from querydesk.governance.sql_guard import normalize_sql
from querydesk.utils.errors import InvalidPaginationParameter

MIN_LIMIT = 1
MAX_LIMIT = 1000

_LIMIT_CLAUSE = re.compile(r"\bLIMIT\b", re.IGNORECASE)
_TRAILING_TERMINATORS = re.compile(r"[\s;]+$")
_PAGEABLE = re.compile(r"^(SELECT|WITH)\b")


class PaginationParams(BaseModel):
    limit: int
    offset: int = 0


@dataclass
class PaginatedSQL:
    sql: str
    applied: bool


def validate_pagination(limit, offset) -> None:
    """Raise ``InvalidPaginationParameter`` unless 1 <= limit <= 1000 and offset >= 0."""
    if isinstance(limit, bool) or not isinstance(limit, int):
        raise InvalidPaginationParameter(f"limit must be an integer, got {limit!r}")
    if isinstance(offset, bool) or not isinstance(offset, int):
        raise InvalidPaginationParameter(f"offset must be an integer, got {offset!r}")
    if not MIN_LIMIT <= limit <= MAX_LIMIT:
        raise InvalidPaginationParameter(
            f"limit must be between {MIN_LIMIT} and {MAX_LIMIT}, got {limit}"
        )
    if offset < 0:
        raise InvalidPaginationParameter(f"offset must be non-negative, got {offset}")


def has_limit_clause(sql: str) -> bool:
    return _LIMIT_CLAUSE.search(sql) is not None


def _strip_trailing(sql: str) -> tuple[str, bool]:
    """Cut ``sql`` after its last real token, dropping trailing ``;`` and comments.

    Returns the trimmed text and whether it may still end inside a line
    comment (only when the tokenizer rejected the input).
    """
    try:
        tokens = sqlglot.tokenize(sql)
    except sqlglot.errors.TokenError:
        base = _TRAILING_TERMINATORS.sub("", sql)
        return base, "--" in base
    body = [t for t in tokens if t.token_type != TokenType.SEMICOLON]
    if not body:
        return "", False
    return sql[: body[-1].end + 1], False


def append_limit(sql: str, limit: int, offset: int = 0) -> PaginatedSQL:
    """Append LIMIT/OFFSET to a SELECT-like statement without one.

    Statements that already carry a LIMIT, or that are not SELECT/WITH
    statements, come back untouched with ``applied=False``.
    """
    if has_limit_clause(sql) or not _PAGEABLE.match(normalize_sql(sql)):
        return PaginatedSQL(sql=sql, applied=False)

    base, open_comment = _strip_trailing(sql)
    # A line comment left in the text would swallow anything appended on its line
    separator = "\n" if open_comment else " "
    paged = f"{base}{separator}LIMIT {limit}"
    if offset:
        paged += f" OFFSET {offset}"
    return PaginatedSQL(sql=paged, applied=True)


def add_pagination(sql: str, limit: int, offset: int = 0) -> PaginatedSQL:
    """Validate the window, then append it (see ``append_limit``)."""
    validate_pagination(limit, offset)
    return append_limit(sql, limit, offset)
