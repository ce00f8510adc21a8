"""Role-based permission gate.

Roles map to a fixed capability table. The table is data, not code paths, so
the whole policy can be checked cell by cell without HTTP in the way.
"""
import logging
from enum import Enum

from querydesk.governance.sql_guard import check_read_only
from querydesk.models import Role, SavedQuery, UserAccount
from querydesk.utils.errors import InsufficientPermissions, ReadOnlyRequired

logger = logging.getLogger(__name__)


class Action(str, Enum):
    CREATE_USER = "CREATE_USER"
    MANAGE_CONNECTIONS = "MANAGE_CONNECTIONS"
    EXECUTE_QUERY = "EXECUTE_QUERY"
    READ_ONLY_QUERY = "READ_ONLY_QUERY"


CAPABILITIES: dict[Role, frozenset[Action]] = {
    Role.ADMIN: frozenset(Action),
    Role.DEVELOPER: frozenset(
        {Action.MANAGE_CONNECTIONS, Action.EXECUTE_QUERY, Action.READ_ONLY_QUERY}
    ),
    Role.BUSINESS_USER: frozenset({Action.READ_ONLY_QUERY}),
}

# Saved-query rows each role may read, besides its own.
SAVED_QUERY_VISIBILITY: dict[Role, frozenset[Role]] = {
    Role.ADMIN: frozenset({Role.ADMIN, Role.DEVELOPER, Role.BUSINESS_USER}),
    Role.DEVELOPER: frozenset({Role.DEVELOPER}),
    Role.BUSINESS_USER: frozenset(),
}


def authorize(role: Role, action: Action) -> bool:
    """Pure lookup in the capability table."""
    return action in CAPABILITIES.get(Role(role), frozenset())


def require(user: UserAccount, action: Action) -> None:
    """Raise ``InsufficientPermissions`` unless ``user`` may perform ``action``."""
    if not authorize(user.role, action):
        logger.warning(
            f"Permission denied: user={user.username} role={user.role.value} "
            f"action={action.value}"
        )
        raise InsufficientPermissions(
            f"Access denied. Insufficient permissions for: {action.value}",
            action=action.value,
            user_role=user.role.value,
        )


def check_sql_submission(user: UserAccount, sql: str) -> Action:
    """Gate a raw SQL submission and return the action it was admitted under.

    Roles holding EXECUTE_QUERY bypass the classifier entirely. Everyone else
    needs READ_ONLY_QUERY and a statement the classifier accepts.
    """
    if authorize(user.role, Action.EXECUTE_QUERY):
        return Action.EXECUTE_QUERY

    require(user, Action.READ_ONLY_QUERY)

    verdict = check_read_only(sql)
    if not verdict.read_only:
        logger.warning(
            f"Read-only violation: user={user.username} role={user.role.value} "
            f"reason={verdict.reason!r} sql={sql[:100]!r}"
        )
        raise ReadOnlyRequired(
            action=Action.EXECUTE_QUERY.value, user_role=user.role.value
        )
    return Action.READ_ONLY_QUERY


def can_read_saved_query(user: UserAccount, saved: SavedQuery) -> bool:
    if saved.created_by == user.id:
        return True
    return saved.role_at_save in SAVED_QUERY_VISIBILITY.get(user.role, frozenset())


def can_delete_saved_query(user: UserAccount, saved: SavedQuery) -> bool:
    """Only the creator may delete, whatever their role."""
    return saved.created_by == user.id
