"""Query execution against MySQL and PostgreSQL targets."""
from querydesk.engine.executor import QueryExecutor

__all__ = ["QueryExecutor"]
