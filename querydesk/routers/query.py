"""SQL execution endpoint.

Order of checks: identity, permission gate (with read-only classification),
connection lookup, then the engine. Rejections happen before any network I/O
to the target database.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from querydesk.engine import QueryExecutor
from querydesk.governance.permissions import check_sql_submission
from querydesk.history import HistoryRecorder
from querydesk.models import ExecutionResult, UserAccount
from querydesk.routers.deps import current_user, get_executor, get_history, get_store
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import ConnectionNotFound, QueryRequired
from querydesk.utils.pagination import PaginationParams, validate_pagination

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/query", tags=["query"])


class ExecuteQueryRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    connection_id: Optional[str] = None
    query: Optional[str] = None
    # Checked by validate_pagination, not by pydantic
    limit: Optional[Any] = None
    offset: Any = 0


@router.post("/execute", response_model=ExecutionResult)
async def execute_query(
    body: ExecuteQueryRequest,
    user: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
    executor: QueryExecutor = Depends(get_executor),
    history: HistoryRecorder = Depends(get_history),
):
    if not body.query or not body.query.strip():
        raise QueryRequired()

    admitted_as = check_sql_submission(user, body.query)

    if body.connection_id:
        profile = await store.get_connection(body.connection_id)
    else:
        profile = await store.get_active_connection()
    if profile is None:
        raise ConnectionNotFound()

    pagination = None
    if body.limit is not None:
        validate_pagination(body.limit, body.offset)
        pagination = PaginationParams(limit=body.limit, offset=body.offset)

    result = await executor.execute(profile, body.query, pagination=pagination)
    logger.info(
        f"Query executed by {user.username} ({admitted_as.value}) on {profile.name}: "
        f"{result.row_count} row(s) in {result.execution_time_millis}ms"
    )
    await history.record(profile, body.query, result)
    return result
