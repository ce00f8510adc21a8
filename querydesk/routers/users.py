"""User administration (admin only)."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querydesk.auth import SessionAuthenticator
from querydesk.governance.permissions import Action
from querydesk.models import Role, UserAccount
from querydesk.routers.deps import get_authenticator, get_store, require_permission
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import BadRequest, NotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/users", tags=["users"])


class CreateUserRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    username: str = Field(..., min_length=3, max_length=255)
    password: str = Field(..., min_length=8, max_length=1024)
    role: Role
    is_active: bool = True


class UpdateUserRequest(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    role: Optional[Role] = None
    is_active: Optional[bool] = None


@router.get("")
async def list_users(
    _: UserAccount = Depends(require_permission(Action.CREATE_USER)),
    store: CredentialStore = Depends(get_store),
):
    return [u.public_dict() for u in await store.list_users()]


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_user(
    body: CreateUserRequest,
    admin: UserAccount = Depends(require_permission(Action.CREATE_USER)),
    authenticator: SessionAuthenticator = Depends(get_authenticator),
):
    user = await authenticator.create_user(
        body.username, body.password, body.role, is_active=body.is_active
    )
    logger.info(f"User {user.username} created by {admin.username}")
    return user.public_dict()


@router.put("/{user_id}")
async def update_user(
    user_id: str,
    body: UpdateUserRequest,
    admin: UserAccount = Depends(require_permission(Action.CREATE_USER)),
    store: CredentialStore = Depends(get_store),
):
    """Change a user's role or active flag. Usernames are immutable."""
    changes = body.model_dump(exclude_unset=True, exclude_none=True)
    if user_id == admin.id and (
        changes.get("is_active") is False or changes.get("role", Role.ADMIN) != Role.ADMIN
    ):
        raise BadRequest("You cannot demote or deactivate your own account")
    user = await store.update_user(user_id, changes)
    if user is None:
        raise NotFound("User not found")
    if not user.is_active:
        await store.delete_sessions_for_user(user_id)
    logger.info(f"User {user.username} updated by {admin.username}: {sorted(changes)}")
    return user.public_dict()


@router.delete("/{user_id}")
async def delete_user(
    user_id: str,
    admin: UserAccount = Depends(require_permission(Action.CREATE_USER)),
    store: CredentialStore = Depends(get_store),
):
    if user_id == admin.id:
        raise BadRequest("You cannot delete your own account")
    if not await store.delete_user(user_id):
        raise NotFound("User not found")
    await store.delete_sessions_for_user(user_id)
    logger.info(f"User {user_id} deleted by {admin.username}")
    return {"success": True}
