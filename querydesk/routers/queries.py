"""Query records (history and named SQL snippets) and their stored results."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querydesk.models import QueryRecord, UserAccount
from querydesk.routers.deps import current_user, get_store
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import NotFound

router = APIRouter(prefix="/queries", tags=["queries"])


class _Body(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateQueryRequest(_Body):
    name: str = Field(..., min_length=1, max_length=255)
    sql_text: str = Field(..., min_length=1)
    connection_id: Optional[str] = None


class UpdateQueryRequest(_Body):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    sql_text: Optional[str] = Field(default=None, min_length=1)
    connection_id: Optional[str] = None


def _dump(record) -> dict:
    return record.model_dump(mode="json", by_alias=True)


@router.get("")
async def list_queries(
    connection_id: Optional[str] = Query(default=None, alias="connectionId"),
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    return [_dump(q) for q in await store.list_queries(connection_id)]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_query(
    body: CreateQueryRequest,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    record = await store.create_query(QueryRecord(**body.model_dump()))
    return _dump(record)


@router.get("/{query_id}")
async def get_query(
    query_id: str,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    record = await store.get_query(query_id)
    if record is None:
        raise NotFound("Query not found")
    return _dump(record)


@router.put("/{query_id}")
async def update_query(
    query_id: str,
    body: UpdateQueryRequest,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    record = await store.update_query(query_id, changes)
    if record is None:
        raise NotFound("Query not found")
    return _dump(record)


@router.delete("/{query_id}")
async def delete_query(
    query_id: str,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    if not await store.delete_query(query_id):
        raise NotFound("Query not found")
    return {"success": True}


@router.get("/{query_id}/result")
async def latest_result(
    query_id: str,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    result = await store.get_latest_query_result(query_id)
    if result is None:
        raise NotFound("No stored result for this query")
    return _dump(result)
