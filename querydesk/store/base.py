"""Abstract credential store.

The store exclusively owns every persisted row. Callers receive frozen
snapshots and change state only through these methods.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Optional

from querydesk.models import (
    ConnectionProfile,
    QueryRecord,
    QueryResultRecord,
    SavedQuery,
    Session,
    UserAccount,
)


class CredentialStore(ABC):
    """Capability interface over connections, history, users and sessions."""

    async def initialize(self) -> None:
        """Prepare backing resources. No-op by default."""

    async def close(self) -> None:
        """Release backing resources. No-op by default."""

    # --- Connection profiles ---

    @abstractmethod
    async def list_connections(self) -> list[ConnectionProfile]:
        pass

    @abstractmethod
    async def get_connection(self, connection_id: str) -> Optional[ConnectionProfile]:
        pass

    @abstractmethod
    async def create_connection(self, profile: ConnectionProfile) -> ConnectionProfile:
        pass

    @abstractmethod
    async def update_connection(
        self, connection_id: str, changes: dict[str, Any]
    ) -> Optional[ConnectionProfile]:
        """Apply ``changes`` (field name -> value). ``is_active`` is ignored here."""

    @abstractmethod
    async def delete_connection(self, connection_id: str) -> bool:
        """Delete a profile. Query records pointing at it are left dangling."""

    @abstractmethod
    async def activate_connection(self, connection_id: str) -> ConnectionProfile:
        """Make ``connection_id`` the only active profile.

        Raises:
            ConnectionNotFound: If no profile has that id; nothing changes.
        """

    async def get_active_connection(self) -> Optional[ConnectionProfile]:
        for profile in await self.list_connections():
            if profile.is_active:
                return profile
        return None

    # --- Query records and results ---

    @abstractmethod
    async def list_queries(self, connection_id: Optional[str] = None) -> list[QueryRecord]:
        pass

    @abstractmethod
    async def get_query(self, query_id: str) -> Optional[QueryRecord]:
        pass

    @abstractmethod
    async def create_query(self, record: QueryRecord) -> QueryRecord:
        pass

    @abstractmethod
    async def update_query(
        self, query_id: str, changes: dict[str, Any]
    ) -> Optional[QueryRecord]:
        pass

    @abstractmethod
    async def delete_query(self, query_id: str) -> bool:
        pass

    @abstractmethod
    async def save_query_result(self, result: QueryResultRecord) -> QueryResultRecord:
        pass

    @abstractmethod
    async def get_latest_query_result(self, query_id: str) -> Optional[QueryResultRecord]:
        pass

    # --- Users ---

    @abstractmethod
    async def list_users(self) -> list[UserAccount]:
        pass

    async def count_users(self) -> int:
        return len(await self.list_users())

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def get_user_by_username(self, username: str) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def create_user(self, user: UserAccount) -> UserAccount:
        """Persist a new account.

        Raises:
            UsernameTaken: If the username is already in use.
        """

    @abstractmethod
    async def update_user(
        self, user_id: str, changes: dict[str, Any]
    ) -> Optional[UserAccount]:
        pass

    @abstractmethod
    async def delete_user(self, user_id: str) -> bool:
        pass

    # --- Sessions ---

    @abstractmethod
    async def create_session(self, session: Session) -> Session:
        pass

    @abstractmethod
    async def get_session_by_token(self, token: str) -> Optional[Session]:
        pass

    @abstractmethod
    async def delete_session(self, token: str) -> bool:
        pass

    @abstractmethod
    async def delete_sessions_for_user(self, user_id: str) -> int:
        pass

    @abstractmethod
    async def delete_expired_sessions(self, now: datetime) -> int:
        pass

    # --- Saved queries ---

    @abstractmethod
    async def list_saved_queries(self) -> list[SavedQuery]:
        pass

    @abstractmethod
    async def get_saved_query(self, saved_id: str) -> Optional[SavedQuery]:
        pass

    @abstractmethod
    async def create_saved_query(self, saved: SavedQuery) -> SavedQuery:
        pass

    @abstractmethod
    async def delete_saved_query(self, saved_id: str) -> bool:
        pass
