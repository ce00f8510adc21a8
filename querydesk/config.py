"""Configuration for the QueryDesk server.

Every setting is read from the environment once at import time.
"""
import os
from dataclasses import dataclass, field


def _env_bool(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() == "true"


@dataclass
class QueryDeskConfig:
    """Server configuration loaded from environment variables."""

    # HTTP
    host: str = field(default_factory=lambda: os.environ.get("QUERYDESK_HOST", "0.0.0.0"))
    port: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_PORT", "8000"))
    )
    log_level: str = field(
        default_factory=lambda: os.environ.get("QUERYDESK_LOG_LEVEL", "INFO").upper()
    )

    # Credential store ("memory" or "postgres")
    store_backend: str = field(
        default_factory=lambda: os.environ.get("QUERYDESK_STORE", "memory").lower()
    )
    store_dsn: str = field(
        default_factory=lambda: os.environ.get("QUERYDESK_STORE_DSN", "")
    )
    store_pool_min: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_STORE_POOL_MIN", "1"))
    )
    store_pool_max: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_STORE_POOL_MAX", "5"))
    )
    store_retry_attempts: int = field(
        default_factory=lambda: int(
            os.environ.get("QUERYDESK_STORE_RETRY_ATTEMPTS", "5")
        )
    )
    store_retry_base_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("QUERYDESK_STORE_RETRY_DELAY", "0.5")
        )
    )
    store_retry_max_delay: float = field(
        default_factory=lambda: float(
            os.environ.get("QUERYDESK_STORE_MAX_DELAY", "10.0")
        )
    )

    # Sessions and passwords
    session_ttl_hours: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_SESSION_TTL_HOURS", "24"))
    )
    bcrypt_rounds: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_BCRYPT_ROUNDS", "12"))
    )
    cookie_secure: bool = field(
        default_factory=lambda: _env_bool("QUERYDESK_COOKIE_SECURE")
    )
    bootstrap_admin_username: str = field(
        default_factory=lambda: os.environ.get("QUERYDESK_ADMIN_USERNAME", "admin")
    )
    bootstrap_admin_password: str = field(
        default_factory=lambda: os.environ.get("QUERYDESK_ADMIN_PASSWORD", "")
    )

    # Query execution
    connect_timeout_seconds: int = field(
        default_factory=lambda: int(os.environ.get("QUERYDESK_CONNECT_TIMEOUT", "10"))
    )
    history_enabled: bool = field(
        default_factory=lambda: _env_bool("QUERYDESK_HISTORY", "true")
    )

    # Bootstrap PostgreSQL connection profile (consumed once at startup)
    pg_host: str = field(default_factory=lambda: os.environ.get("PGHOST", ""))
    pg_port: int = field(
        default_factory=lambda: int(os.environ.get("PGPORT", "5432"))
    )
    pg_database: str = field(
        default_factory=lambda: os.environ.get("PGDATABASE", "postgres")
    )
    pg_user: str = field(default_factory=lambda: os.environ.get("PGUSER", "postgres"))
    pg_password: str = field(default_factory=lambda: os.environ.get("PGPASSWORD", ""))
    pg_sslmode: str = field(
        default_factory=lambda: os.environ.get("PGSSLMODE", "disable")
    )


config = QueryDeskConfig()
