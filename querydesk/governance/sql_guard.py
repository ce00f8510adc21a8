"""Lexical read-only classification of raw SQL.

This is a heuristic, not a parser: comments are stripped, whitespace is
collapsed, and the text is matched against a small set of leading keywords
and a list of write keywords that may appear anywhere. String literals are
not treated specially, so ``SELECT 'drop'`` is rejected.

Statement counting for multi-statement rejection uses sqlglot's tokenizer so
that semicolons inside literals and comments are ignored.
"""
import re
import logging
from dataclasses import dataclass
from typing import Optional

import sqlglot
from sqlglot.tokens import TokenType

logger = logging.getLogger(__name__)

# One pass: whichever comment opens first wins
_COMMENT = re.compile(r"/\*.*?\*/|--[^\n]*", re.DOTALL)
_WHITESPACE = re.compile(r"\s+")

READ_ONLY_PATTERNS = [
    re.compile(r"^SELECT\b"),
    re.compile(r"^WITH\b.*\bSELECT\b"),
    re.compile(r"^EXPLAIN\b"),
    re.compile(r"^DESCRIBE\b"),
    re.compile(r"^SHOW\b"),
]

WRITE_KEYWORDS = (
    "INSERT",
    "UPDATE",
    "DELETE",
    "DROP",
    "CREATE",
    "ALTER",
    "TRUNCATE",
    "REPLACE",
)
_WRITE_PATTERN = re.compile(r"\b(" + "|".join(WRITE_KEYWORDS) + r")\b")


@dataclass
class ReadOnlyCheck:
    """Outcome of classifying one submitted SQL string."""

    read_only: bool
    normalized: str
    statement_count: int = 1
    write_keyword: Optional[str] = None
    reason: Optional[str] = None


def normalize_sql(sql: str) -> str:
    """Strip comments, collapse whitespace and uppercase."""
    text = _COMMENT.sub(" ", sql or "")
    return _WHITESPACE.sub(" ", text).strip().upper()


def is_read_only(sql: str) -> bool:
    """True iff ``sql`` starts like a read statement and names no write keyword.

    Empty or whitespace-only input is not read-only.
    """
    normalized = normalize_sql(sql)
    if not normalized:
        return False
    if not any(p.search(normalized) for p in READ_ONLY_PATTERNS):
        return False
    return _WRITE_PATTERN.search(normalized) is None


def count_statements(sql: str) -> int:
    """Count non-empty semicolon-separated statements in ``sql``."""
    try:
        tokens = sqlglot.tokenize(sql)
    except sqlglot.errors.TokenError:
        # Unterminated literal or similar; fall back to a plain split.
        logger.debug("Tokenizer rejected SQL, counting by plain split")
        return len([part for part in normalize_sql(sql).split(";") if part.strip()])

    count = 0
    pending = False
    for token in tokens:
        if token.token_type == TokenType.SEMICOLON:
            if pending:
                count += 1
            pending = False
        else:
            pending = True
    if pending:
        count += 1
    return count


def check_read_only(sql: str, allow_multiple: bool = False) -> ReadOnlyCheck:
    """Classify ``sql`` and explain the verdict.

    With ``allow_multiple=False`` a batch of several statements is rejected
    even when every statement would pass on its own.
    """
    normalized = normalize_sql(sql)
    if not normalized:
        return ReadOnlyCheck(
            read_only=False,
            normalized=normalized,
            statement_count=0,
            reason="Empty statement",
        )

    statements = count_statements(sql)
    if statements > 1 and not allow_multiple:
        return ReadOnlyCheck(
            read_only=False,
            normalized=normalized,
            statement_count=statements,
            reason="Multiple statements are not allowed",
        )

    match = _WRITE_PATTERN.search(normalized)
    if match:
        return ReadOnlyCheck(
            read_only=False,
            normalized=normalized,
            statement_count=statements,
            write_keyword=match.group(1),
            reason=f"Statement contains write keyword {match.group(1)}",
        )

    if not any(p.search(normalized) for p in READ_ONLY_PATTERNS):
        return ReadOnlyCheck(
            read_only=False,
            normalized=normalized,
            statement_count=statements,
            reason="Only SELECT, WITH ... SELECT, EXPLAIN, DESCRIBE and SHOW are read-only",
        )

    return ReadOnlyCheck(read_only=True, normalized=normalized, statement_count=statements)
