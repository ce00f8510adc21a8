"""QueryDesk server: FastAPI application and entry point."""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from querydesk.auth import SessionAuthenticator
from querydesk.config import config
from querydesk.engine import QueryExecutor
from querydesk.history import HistoryRecorder
from querydesk.models import ConnectionProfile, EngineKind
from querydesk.routers import ALL_ROUTERS
from querydesk.store import build_store
from querydesk.store.base import CredentialStore
from querydesk.utils.errors import QueryDeskError

logger = logging.getLogger(__name__)

_TLS_SSLMODES = {"require", "verify-ca", "verify-full"}


async def bootstrap_default_connection(store: CredentialStore) -> Optional[ConnectionProfile]:
    """Create and activate a PostgreSQL profile from PG* env vars on an empty store."""
    if not config.pg_host:
        return None
    if await store.list_connections():
        return None
    profile = await store.create_connection(
        ConnectionProfile(
            name="Default PostgreSQL",
            engine_kind=EngineKind.POSTGRESQL,
            host=config.pg_host,
            port=config.pg_port,
            database=config.pg_database,
            username=config.pg_user,
            password=config.pg_password,
            use_tls=config.pg_sslmode.lower() in _TLS_SSLMODES,
        )
    )
    profile = await store.activate_connection(profile.id)
    logger.info(
        f"Bootstrap connection created: {profile.host}:{profile.port}/{profile.database}"
    )
    return profile


def create_app(
    store: Optional[CredentialStore] = None,
    executor: Optional[QueryExecutor] = None,
    authenticator: Optional[SessionAuthenticator] = None,
) -> FastAPI:
    store = store or build_store()
    authenticator = authenticator or SessionAuthenticator(store)
    executor = executor or QueryExecutor()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Initialize and tear down resources."""
        await store.initialize()
        await authenticator.bootstrap_default_admin()
        await bootstrap_default_connection(store)
        await authenticator.cleanup_expired_sessions()
        logger.info(f"QueryDesk started (store={type(store).__name__})")

        yield

        try:
            await store.close()
        except Exception:
            logger.exception("Error while closing the credential store")
        logger.info("QueryDesk stopped")

    app = FastAPI(title="QueryDesk", version="1.0.0", lifespan=lifespan)
    app.state.store = store
    app.state.authenticator = authenticator
    app.state.executor = executor
    app.state.history = HistoryRecorder(store, enabled=config.history_enabled)

    @app.exception_handler(QueryDeskError)
    async def querydesk_error_handler(request: Request, exc: QueryDeskError):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    for router in ALL_ROUTERS:
        app.include_router(router, prefix="/api")

    @app.get("/api/health")
    async def health():
        return {"status": "ok"}

    return app


def main():
    import uvicorn

    logging.basicConfig(level=config.log_level)
    uvicorn.run(create_app(), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
