"""Connection profile CRUD, liveness test, activation and schema listing."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from querydesk.engine import QueryExecutor
from querydesk.governance.permissions import Action
from querydesk.models import ConnectionProfile, EngineKind, UserAccount
from querydesk.routers.deps import current_user, get_executor, get_store, require_permission
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import ConnectionNotFound

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/connections", tags=["connections"])


class _Body(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True
    )


class CreateConnectionRequest(_Body):
    name: str = Field(..., min_length=1, max_length=255)
    engine_kind: EngineKind
    host: str = Field(..., min_length=1)
    port: int = Field(..., ge=1, le=65535)
    database: str = Field(..., min_length=1)
    username: str = Field(..., min_length=1)
    password: str = ""
    use_tls: bool = False


class UpdateConnectionRequest(_Body):
    name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    engine_kind: Optional[EngineKind] = None
    host: Optional[str] = Field(default=None, min_length=1)
    port: Optional[int] = Field(default=None, ge=1, le=65535)
    database: Optional[str] = Field(default=None, min_length=1)
    username: Optional[str] = Field(default=None, min_length=1)
    password: Optional[str] = None
    use_tls: Optional[bool] = None


async def load_connection(store: CredentialStore, connection_id: str) -> ConnectionProfile:
    profile = await store.get_connection(connection_id)
    if profile is None:
        raise ConnectionNotFound()
    return profile


@router.get("")
async def list_connections(
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    return [c.public_dict() for c in await store.list_connections()]


@router.get("/{connection_id}")
async def get_connection(
    connection_id: str,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
):
    return (await load_connection(store, connection_id)).public_dict()


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_connection(
    body: CreateConnectionRequest,
    user: UserAccount = Depends(require_permission(Action.MANAGE_CONNECTIONS)),
    store: CredentialStore = Depends(get_store),
):
    profile = await store.create_connection(ConnectionProfile(**body.model_dump()))
    logger.info(
        f"Connection {profile.name} ({profile.engine_kind.value}) created by {user.username}"
    )
    return profile.public_dict()


@router.patch("/{connection_id}")
async def update_connection(
    connection_id: str,
    body: UpdateConnectionRequest,
    _: UserAccount = Depends(require_permission(Action.MANAGE_CONNECTIONS)),
    store: CredentialStore = Depends(get_store),
):
    profile = await store.update_connection(
        connection_id, body.model_dump(exclude_unset=True, exclude_none=True)
    )
    if profile is None:
        raise ConnectionNotFound()
    return profile.public_dict()


@router.delete("/{connection_id}")
async def delete_connection(
    connection_id: str,
    user: UserAccount = Depends(require_permission(Action.MANAGE_CONNECTIONS)),
    store: CredentialStore = Depends(get_store),
):
    if not await store.delete_connection(connection_id):
        raise ConnectionNotFound()
    logger.info(f"Connection {connection_id} deleted by {user.username}")
    return {"success": True}


@router.post("/{connection_id}/test")
async def test_connection(
    connection_id: str,
    _: UserAccount = Depends(require_permission(Action.MANAGE_CONNECTIONS)),
    store: CredentialStore = Depends(get_store),
    executor: QueryExecutor = Depends(get_executor),
):
    profile = await load_connection(store, connection_id)
    return {"success": await executor.test_connection(profile)}


@router.post("/{connection_id}/activate")
async def activate_connection(
    connection_id: str,
    user: UserAccount = Depends(require_permission(Action.MANAGE_CONNECTIONS)),
    store: CredentialStore = Depends(get_store),
):
    profile = await store.activate_connection(connection_id)
    logger.info(f"Connection {profile.name} activated by {user.username}")
    return {"success": True}


@router.get("/{connection_id}/schema")
async def get_schema(
    connection_id: str,
    _: UserAccount = Depends(current_user),
    store: CredentialStore = Depends(get_store),
    executor: QueryExecutor = Depends(get_executor),
):
    profile = await load_connection(store, connection_id)
    schema = await executor.get_schema(profile)
    return schema.model_dump(mode="json", by_alias=True)
