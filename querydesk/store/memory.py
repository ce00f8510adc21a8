"""In-process credential store.

Rows live in dicts keyed by id and are replaced wholesale on update, so a
reader always sees either the old or the new snapshot of a row.
"""
import asyncio
import logging
from datetime import datetime
from typing import Any, Optional

from querydesk.models import (
    ConnectionProfile,
    QueryRecord,
    QueryResultRecord,
    SavedQuery,
    Session,
    UserAccount,
    utcnow,
)
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import ConnectionNotFound, UsernameTaken

logger = logging.getLogger(__name__)

_IMMUTABLE_FIELDS = {"id", "created_at"}


def _apply(record, changes: dict[str, Any], extra_excluded: set[str] = frozenset()):
    update = {
        k: v
        for k, v in changes.items()
        if k not in _IMMUTABLE_FIELDS and k not in extra_excluded
    }
    if "updated_at" in type(record).model_fields:
        update["updated_at"] = utcnow()
    return record.model_copy(update=update)


class MemoryStore(CredentialStore):
    def __init__(self):
        self._connections: dict[str, ConnectionProfile] = {}
        self._queries: dict[str, QueryRecord] = {}
        self._results: dict[str, QueryResultRecord] = {}
        self._users: dict[str, UserAccount] = {}
        self._sessions: dict[str, Session] = {}
        self._saved: dict[str, SavedQuery] = {}
        self._activation_lock = asyncio.Lock()
        self._user_lock = asyncio.Lock()

    # --- Connection profiles ---

    async def list_connections(self) -> list[ConnectionProfile]:
        return sorted(self._connections.values(), key=lambda c: c.created_at)

    async def get_connection(self, connection_id: str) -> Optional[ConnectionProfile]:
        return self._connections.get(connection_id)

    async def create_connection(self, profile: ConnectionProfile) -> ConnectionProfile:
        # New profiles never start active; activation goes through activate_connection.
        profile = profile.model_copy(update={"is_active": False})
        self._connections[profile.id] = profile
        return profile

    async def update_connection(
        self, connection_id: str, changes: dict[str, Any]
    ) -> Optional[ConnectionProfile]:
        existing = self._connections.get(connection_id)
        if existing is None:
            return None
        updated = _apply(existing, changes, {"is_active"})
        self._connections[connection_id] = updated
        return updated

    async def delete_connection(self, connection_id: str) -> bool:
        return self._connections.pop(connection_id, None) is not None

    async def activate_connection(self, connection_id: str) -> ConnectionProfile:
        async with self._activation_lock:
            if connection_id not in self._connections:
                raise ConnectionNotFound()
            for cid, profile in list(self._connections.items()):
                should_be_active = cid == connection_id
                if profile.is_active != should_be_active:
                    self._connections[cid] = profile.model_copy(
                        update={"is_active": should_be_active}
                    )
            return self._connections[connection_id]

    # --- Query records and results ---

    async def list_queries(self, connection_id: Optional[str] = None) -> list[QueryRecord]:
        queries = sorted(self._queries.values(), key=lambda q: q.created_at)
        if connection_id:
            return [q for q in queries if q.connection_id == connection_id]
        return queries

    async def get_query(self, query_id: str) -> Optional[QueryRecord]:
        return self._queries.get(query_id)

    async def create_query(self, record: QueryRecord) -> QueryRecord:
        self._queries[record.id] = record
        return record

    async def update_query(
        self, query_id: str, changes: dict[str, Any]
    ) -> Optional[QueryRecord]:
        existing = self._queries.get(query_id)
        if existing is None:
            return None
        updated = _apply(existing, changes)
        self._queries[query_id] = updated
        return updated

    async def delete_query(self, query_id: str) -> bool:
        return self._queries.pop(query_id, None) is not None

    async def save_query_result(self, result: QueryResultRecord) -> QueryResultRecord:
        self._results[result.id] = result
        return result

    async def get_latest_query_result(self, query_id: str) -> Optional[QueryResultRecord]:
        matches = [r for r in self._results.values() if r.query_id == query_id]
        if not matches:
            return None
        return max(matches, key=lambda r: r.created_at)

    # --- Users ---

    async def list_users(self) -> list[UserAccount]:
        return sorted(self._users.values(), key=lambda u: u.created_at)

    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        return self._users.get(user_id)

    async def get_user_by_username(self, username: str) -> Optional[UserAccount]:
        for user in self._users.values():
            if user.username == username:
                return user
        return None

    async def create_user(self, user: UserAccount) -> UserAccount:
        async with self._user_lock:
            if await self.get_user_by_username(user.username):
                raise UsernameTaken()
            self._users[user.id] = user
        return user

    async def update_user(
        self, user_id: str, changes: dict[str, Any]
    ) -> Optional[UserAccount]:
        existing = self._users.get(user_id)
        if existing is None:
            return None
        updated = _apply(existing, changes, {"username"})
        self._users[user_id] = updated
        return updated

    async def delete_user(self, user_id: str) -> bool:
        return self._users.pop(user_id, None) is not None

    # --- Sessions ---

    async def create_session(self, session: Session) -> Session:
        self._sessions[session.token] = session
        return session

    async def get_session_by_token(self, token: str) -> Optional[Session]:
        return self._sessions.get(token)

    async def delete_session(self, token: str) -> bool:
        return self._sessions.pop(token, None) is not None

    async def delete_sessions_for_user(self, user_id: str) -> int:
        tokens = [t for t, s in self._sessions.items() if s.user_id == user_id]
        for token in tokens:
            self._sessions.pop(token, None)
        return len(tokens)

    async def delete_expired_sessions(self, now: datetime) -> int:
        expired = [t for t, s in self._sessions.items() if s.is_expired(now)]
        for token in expired:
            self._sessions.pop(token, None)
        return len(expired)

    # --- Saved queries ---

    async def list_saved_queries(self) -> list[SavedQuery]:
        return sorted(self._saved.values(), key=lambda s: s.created_at, reverse=True)

    async def get_saved_query(self, saved_id: str) -> Optional[SavedQuery]:
        return self._saved.get(saved_id)

    async def create_saved_query(self, saved: SavedQuery) -> SavedQuery:
        self._saved[saved.id] = saved
        return saved

    async def delete_saved_query(self, saved_id: str) -> bool:
        return self._saved.pop(saved_id, None) is not None
