"""Error taxonomy and driver error translation.

Every rejection carries a stable ``code`` so clients can branch on it
without matching message prose.
"""
from typing import Any, Optional

import psycopg
import pymysql


class QueryDeskError(Exception):
    """Base class for errors that map onto an HTTP response."""

    code = "INTERNAL_ERROR"
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **details: Any):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body = {"error": self.message, "code": self.code}
        body.update({k: v for k, v in self.details.items() if v is not None})
        return body


class AuthRequired(QueryDeskError):
    code = "AUTH_REQUIRED"
    status_code = 401
    default_message = "Authentication required"


class InvalidCredentials(QueryDeskError):
    """Raised for unknown user, inactive account and wrong password alike."""

    code = "INVALID_CREDENTIALS"
    status_code = 401
    default_message = "Invalid username or password"

    def __init__(self):
        super().__init__()


class InsufficientPermissions(QueryDeskError):
    code = "INSUFFICIENT_PERMISSIONS"
    status_code = 403
    default_message = "Access denied. Insufficient permissions"

    def __init__(
        self,
        message: Optional[str] = None,
        action: Optional[str] = None,
        user_role: Optional[str] = None,
    ):
        super().__init__(message, requiredAction=action, userRole=user_role)
        self.action = action
        self.user_role = user_role


class ReadOnlyRequired(InsufficientPermissions):
    code = "READ_ONLY_REQUIRED"
    default_message = "Business users can only execute read-only (SELECT) queries"


class InvalidPaginationParameter(QueryDeskError):
    code = "INVALID_PAGINATION"
    status_code = 400
    default_message = "Invalid pagination parameter"


class BadRequest(QueryDeskError):
    code = "BAD_REQUEST"
    status_code = 400
    default_message = "Bad request"


class QueryRequired(QueryDeskError):
    code = "QUERY_REQUIRED"
    status_code = 400
    default_message = "SQL query is required"


class ConnectionNotFound(QueryDeskError):
    code = "CONNECTION_NOT_FOUND"
    status_code = 404
    default_message = "Connection not found"


class NotFound(QueryDeskError):
    code = "NOT_FOUND"
    status_code = 404
    default_message = "Not found"


class UsernameTaken(QueryDeskError):
    code = "USERNAME_TAKEN"
    status_code = 409
    default_message = "Username already exists"


class UnsupportedEngine(QueryDeskError):
    code = "UNSUPPORTED_ENGINE"
    status_code = 400
    default_message = "Unsupported database type"


class QueryExecutionFailed(QueryDeskError):
    code = "QUERY_EXECUTION_FAILED"
    status_code = 400
    default_message = "Query execution failed"


class SchemaFetchFailed(QueryDeskError):
    code = "SCHEMA_FETCH_FAILED"
    status_code = 502
    default_message = "Failed to fetch schema"


def describe_driver_error(e: Exception) -> str:
    """Return the driver's own message for ``e``, unmodified in substance.

    psycopg errors expose the server message on ``diag.message_primary``;
    pymysql errors carry ``(errno, message)`` in ``args``.
    """
    if isinstance(e, psycopg.Error):
        diag = getattr(e, "diag", None)
        primary = getattr(diag, "message_primary", None) if diag else None
        return primary or str(e).strip()

    if isinstance(e, pymysql.err.MySQLError):
        if len(e.args) >= 2 and isinstance(e.args[0], int):
            return f"({e.args[0]}) {e.args[1]}"
        return str(e)

    if isinstance(e, TimeoutError):
        return f"Timed out: {e}" if str(e) else "Timed out waiting for the database"

    if isinstance(e, OSError):
        return f"Connection failed: {e}"

    return str(e) or type(e).__name__
