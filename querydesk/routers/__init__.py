"""HTTP routers, all mounted under /api."""
from querydesk.routers.auth import router as auth_router
from querydesk.routers.connections import router as connections_router
from querydesk.routers.export import router as export_router
from querydesk.routers.queries import router as queries_router
from querydesk.routers.query import router as query_router
from querydesk.routers.saved_queries import router as saved_queries_router
from querydesk.routers.users import router as users_router

ALL_ROUTERS = [
    auth_router,
    users_router,
    connections_router,
    query_router,
    queries_router,
    saved_queries_router,
    export_router,
]
