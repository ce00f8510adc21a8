"""Session authentication: password hashing, login, token validation.

Passwords are hashed with bcrypt after a SHA-256 pre-hash (bcrypt only reads
72 bytes). Hashing runs in a worker thread so the event loop keeps serving
other requests while bcrypt burns CPU.
"""
import asyncio
import base64
import hashlib
import logging
import secrets
from datetime import timedelta
from typing import Optional

import bcrypt

from querydesk.config import config
from querydesk.models import Role, Session, UserAccount, utcnow
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import InvalidCredentials

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


def _prepare_password(password: str) -> bytes:
    return base64.b64encode(hashlib.sha256(password.encode()).digest())


def _hash_sync(password: str, rounds: int) -> str:
    return bcrypt.hashpw(_prepare_password(password), bcrypt.gensalt(rounds)).decode()


def _verify_sync(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(_prepare_password(password), password_hash.encode())
    except ValueError:
        # Malformed stored hash
        return False


class SessionAuthenticator:
    """Turns credentials into a session token and tokens back into users."""

    def __init__(
        self,
        store: CredentialStore,
        session_ttl: Optional[timedelta] = None,
        bcrypt_rounds: Optional[int] = None,
    ):
        self._store = store
        self._session_ttl = session_ttl or timedelta(hours=config.session_ttl_hours)
        self._rounds = bcrypt_rounds or config.bcrypt_rounds
        self._dummy_hash: Optional[str] = None

    @property
    def session_ttl(self) -> timedelta:
        return self._session_ttl

    async def hash_secret(self, plaintext: str) -> str:
        return await asyncio.to_thread(_hash_sync, plaintext, self._rounds)

    async def verify_secret(self, plaintext: str, password_hash: str) -> bool:
        return await asyncio.to_thread(_verify_sync, plaintext, password_hash)

    async def create_user(
        self, username: str, password: str, role: Role, is_active: bool = True
    ) -> UserAccount:
        """Create an account. Raises ``UsernameTaken`` on duplicates."""
        user = UserAccount(
            username=username,
            password_hash=await self.hash_secret(password),
            role=Role(role),
            is_active=is_active,
        )
        user = await self._store.create_user(user)
        logger.info(f"User created: username={user.username} role={user.role.value}")
        return user

    async def login(self, username: str, password: str) -> tuple[UserAccount, str]:
        """Verify credentials and open a session.

        Unknown user, inactive account and wrong password all raise the same
        ``InvalidCredentials``. A hash comparison runs in every case so the
        three are not separable by timing either.
        """
        user = await self._store.get_user_by_username(username)
        if user is None:
            await self.verify_secret(password, await self._get_dummy_hash())
            logger.warning(f"Login failed: username={username!r}")
            raise InvalidCredentials()

        password_ok = await self.verify_secret(password, user.password_hash)
        if not password_ok or not user.is_active:
            logger.warning(f"Login failed: username={username!r}")
            raise InvalidCredentials()

        token = secrets.token_urlsafe(TOKEN_BYTES)
        await self._store.create_session(
            Session(
                user_id=user.id,
                token=token,
                expires_at=utcnow() + self._session_ttl,
            )
        )
        logger.info(f"Login succeeded: username={user.username} role={user.role.value}")
        return user, token

    async def validate(self, token: Optional[str]) -> Optional[UserAccount]:
        """Return the active user behind ``token``, or None.

        An expired session is deleted as a side effect.
        """
        if not token:
            return None

        session = await self._store.get_session_by_token(token)
        if session is None:
            return None

        if session.is_expired():
            await self._store.delete_session(token)
            logger.debug(f"Expired session removed for user_id={session.user_id}")
            return None

        user = await self._store.get_user(session.user_id)
        if user is None or not user.is_active:
            return None
        return user

    async def logout(self, token: Optional[str]) -> bool:
        """Delete the session. Reports success even if it was already gone."""
        if token:
            await self._store.delete_session(token)
        return True

    async def cleanup_expired_sessions(self) -> int:
        removed = await self._store.delete_expired_sessions(utcnow())
        if removed:
            logger.info(f"Removed {removed} expired session(s)")
        return removed

    async def bootstrap_default_admin(self) -> Optional[UserAccount]:
        """Create the first admin account when no accounts exist.

        The password comes from QUERYDESK_ADMIN_PASSWORD. Without it a random
        one is generated and logged once; rotate it after first login.
        """
        if await self._store.count_users() > 0:
            return None

        password = config.bootstrap_admin_password
        if not password:
            password = secrets.token_urlsafe(12)
            logger.warning(
                f"No QUERYDESK_ADMIN_PASSWORD set. Generated password for "
                f"'{config.bootstrap_admin_username}': {password} "
                f"(change it immediately)"
            )
        user = await self.create_user(
            config.bootstrap_admin_username, password, Role.ADMIN
        )
        logger.info(f"Bootstrap admin account created: username={user.username}")
        return user

    async def _get_dummy_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = await self.hash_secret(secrets.token_hex(16))
        return self._dummy_hash
