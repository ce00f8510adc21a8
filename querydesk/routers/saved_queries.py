"""Saved queries with role-scoped visibility.

Visibility follows SAVED_QUERY_VISIBILITY; deletion is creator-only.
"""
import logging

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field

from querydesk.governance.permissions import can_delete_saved_query, can_read_saved_query
from querydesk.models import SavedQuery, UserAccount
from querydesk.routers.deps import current_user, get_store
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import InsufficientPermissions, NotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/saved-queries", tags=["saved-queries"])


class SaveQueryRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    query: str = Field(..., min_length=1)


def _dump(saved: SavedQuery) -> dict:
    return saved.model_dump(mode="json", by_alias=True)


@router.get("")
async def list_saved_queries(
    user: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    return [
        _dump(s) for s in await store.list_saved_queries() if can_read_saved_query(user, s)
    ]


@router.post("", status_code=status.HTTP_201_CREATED)
async def save_query(
    body: SaveQueryRequest,
    user: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    saved = await store.create_saved_query(
        SavedQuery(
            name=body.name,
            sql_text=body.query,
            created_by=user.id,
            role_at_save=user.role,
        )
    )
    return _dump(saved)


@router.delete("/{saved_id}")
async def delete_saved_query(
    saved_id: str,
    user: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    saved = await store.get_saved_query(saved_id)
    # Rows the caller cannot read look exactly like missing rows
    if saved is None or not can_read_saved_query(user, saved):
        raise NotFound("Saved query not found")
    if not can_delete_saved_query(user, saved):
        logger.warning(f"User {user.username} tried to delete saved query {saved_id}")
        raise InsufficientPermissions(
            "Only the creator can delete a saved query", user_role=user.role.value
        )
    await store.delete_saved_query(saved_id)
    return {"success": True}
