"""Domain records shared by the store, the authenticator and the engine.

All records serialize with camelCase keys (``isActive``, ``executionTimeMillis``)
so HTTP payloads match what the web client expects.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Role(str, Enum):
    ADMIN = "admin"
    DEVELOPER = "developer"
    BUSINESS_USER = "business_user"


class EngineKind(str, Enum):
    MYSQL = "mysql"
    POSTGRESQL = "postgresql"


class _Record(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )


class ConnectionProfile(_Record):
    """Stored descriptor of how to reach one engine instance.

    Frozen: the engine only ever sees a snapshot, updates go through the store.
    """

    id: str = Field(default_factory=new_id)
    name: str
    engine_kind: EngineKind
    host: str
    port: int
    database: str
    username: str
    password: str = Field(default="", repr=False)
    use_tls: bool = False
    is_active: bool = False
    created_at: datetime = Field(default_factory=utcnow)

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"password"})


class QueryRecord(_Record):
    id: str = Field(default_factory=new_id)
    name: str
    sql_text: str
    connection_id: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class ColumnDescriptor(_Record):
    name: str
    # Driver-native display hint: FIELD_TYPE code (MySQL) or type OID (PostgreSQL)
    type_tag: str = Field(alias="type")


class QueryResultRecord(_Record):
    id: str = Field(default_factory=new_id)
    query_id: Optional[str] = None
    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    execution_time_millis: int = 0
    row_count: int = 0
    created_at: datetime = Field(default_factory=utcnow)


class UserAccount(_Record):
    id: str = Field(default_factory=new_id)
    username: str
    password_hash: str = Field(repr=False)
    role: Role
    is_active: bool = True
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def public_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude={"password_hash"})


class Session(_Record):
    id: str = Field(default_factory=new_id)
    user_id: str
    token: str = Field(repr=False)
    expires_at: datetime
    created_at: datetime = Field(default_factory=utcnow)

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        return self.expires_at <= (now or utcnow())


class SavedQuery(_Record):
    id: str = Field(default_factory=new_id)
    name: str
    sql_text: str
    created_by: str
    role_at_save: Role
    created_at: datetime = Field(default_factory=utcnow)


class ExecutionResult(_Record):
    """Canonical, engine-agnostic result of one executed statement."""

    rows: list[dict[str, Any]] = Field(default_factory=list)
    columns: list[ColumnDescriptor] = Field(default_factory=list)
    execution_time_millis: int = 0
    row_count: int = 0
    has_more_rows: bool = False
    pagination_applied: bool = False


class TableInfo(_Record):
    name: str
    approx_row_count: Optional[int] = None


class SchemaInfo(_Record):
    tables: list[TableInfo] = Field(default_factory=list)
