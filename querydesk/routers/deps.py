"""Shared FastAPI dependencies: service lookup, identity, permission checks."""
from typing import Callable, Optional

from fastapi import Depends, Request

from querydesk.auth import SessionAuthenticator
from querydesk.engine import QueryExecutor
from querydesk.governance.permissions import Action, require
from querydesk.history import HistoryRecorder
from querydesk.models import UserAccount
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import AuthRequired

SESSION_COOKIE = "sessionToken"


def get_store(request: Request) -> CredentialStore:
    return request.app.state.store


def get_authenticator(request: Request) -> SessionAuthenticator:
    return request.app.state.authenticator


def get_executor(request: Request) -> QueryExecutor:
    return request.app.state.executor


def get_history(request: Request) -> HistoryRecorder:
    return request.app.state.history


def session_token(request: Request) -> Optional[str]:
    """Session token from the cookie, else from an ``Authorization: Bearer`` header."""
    token = request.cookies.get(SESSION_COOKIE)
    if token:
        return token
    header = request.headers.get("authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:].strip() or None
    return None


async def optional_user(
    request: Request,
    authenticator: SessionAuthenticator = Depends(get_authenticator),
) -> Optional[UserAccount]:
    return await authenticator.validate(session_token(request))


async def current_user(
    user: Optional[UserAccount] = Depends(optional_user),
) -> UserAccount:
    if user is None:
        raise AuthRequired()
    return user


def require_permission(action: Action) -> Callable:
    """Dependency factory: authenticated user holding ``action``."""

    async def dependency(user: UserAccount = Depends(current_user)) -> UserAccount:
        require(user, action)
        return user

    return dependency
