"""Best-effort query history.

Recording never fails the caller: any store error is logged and dropped.
"""
import logging
from typing import Optional

from querydesk.models import (
    ConnectionProfile,
    ExecutionResult,
    QueryRecord,
    QueryResultRecord,
)
from querydesk.store.base import CredentialStore

logger = logging.getLogger(__name__)

_NAME_LENGTH = 60


def history_name(sql: str) -> str:
    """Single-line, truncated SQL used as the record's display name."""
    name = " ".join(sql.split())
    if len(name) > _NAME_LENGTH:
        name = name[: _NAME_LENGTH - 3] + "..."
    return name or "Untitled query"


class HistoryRecorder:
    def __init__(self, store: CredentialStore, enabled: bool = True):
        self._store = store
        self.enabled = enabled

    async def record(
        self, profile: ConnectionProfile, sql: str, result: ExecutionResult
    ) -> Optional[QueryResultRecord]:
        if not self.enabled:
            return None
        try:
            query = await self._store.create_query(
                QueryRecord(
                    name=history_name(sql),
                    sql_text=sql,
                    connection_id=profile.id,
                )
            )
            return await self._store.save_query_result(
                QueryResultRecord(
                    query_id=query.id,
                    rows=result.rows,
                    columns=result.columns,
                    execution_time_millis=result.execution_time_millis,
                    row_count=result.row_count,
                )
            )
        except Exception:
            logger.exception(f"Failed to record query history for connection {profile.id}")
            return None
