"""Credential store backends."""
from querydesk.config import config
from querydesk.store.base import CredentialStore
from querydesk.store.memory import MemoryStore


def build_store() -> CredentialStore:
    """Build the store selected by ``QUERYDESK_STORE``."""
    if config.store_backend == "postgres":
        if not config.store_dsn:
            raise ValueError("QUERYDESK_STORE=postgres requires QUERYDESK_STORE_DSN")
        from querydesk.store.postgres import PostgresStore

        return PostgresStore(config.store_dsn)
    if config.store_backend != "memory":
        raise ValueError(f"Unknown store backend: {config.store_backend}")
    return MemoryStore()


__all__ = ["CredentialStore", "MemoryStore", "build_store"]
