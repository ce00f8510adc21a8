"""Shared test fixtures for QueryDesk tests."""
import asyncio
import re

import pytest
from fastapi.testclient import TestClient

from querydesk.auth import SessionAuthenticator
from querydesk.config import config
from querydesk.engine.base import EngineAdapter, RawResult
from querydesk.engine.executor import QueryExecutor
from querydesk.main import create_app
from querydesk.models import (
    ColumnDescriptor,
    ConnectionProfile,
    EngineKind,
    Role,
    TableInfo,
)
from querydesk.store.memory import MemoryStore

PASSWORD = "correct-horse-battery"

_TRAILING_LIMIT = re.compile(r"\sLIMIT (\d+)(?: OFFSET (\d+))?$")


class FakeAdapter(EngineAdapter):
    """In-memory engine that honours an appended LIMIT/OFFSET like a real server."""

    kind = EngineKind.POSTGRESQL

    def __init__(self, rows=None, affected_rows=None, error=None, tables=None):
        super().__init__()
        self.rows = rows if rows is not None else []
        self.affected_rows = affected_rows
        self.error = error
        self.tables = tables if tables is not None else []
        self.statements = []
        self.pings = 0

    async def ping(self, profile):
        self.pings += 1
        if self.error:
            raise self.error

    async def run(self, profile, sql):
        self.statements.append(sql)
        if self.error:
            raise self.error
        if self.affected_rows is not None:
            return RawResult(affected_rows=self.affected_rows)

        rows = list(self.rows)
        match = _TRAILING_LIMIT.search(sql)
        if match:
            offset = int(match.group(2) or 0)
            rows = rows[offset : offset + int(match.group(1))]
        first = self.rows[0] if self.rows else {}
        columns = [ColumnDescriptor(name=name, type_tag="23") for name in first]
        return RawResult(rows=rows, columns=columns)

    async def list_tables(self, profile):
        if self.error:
            raise self.error
        return self.tables


def make_profile(name="Warehouse", engine_kind=EngineKind.POSTGRESQL, **overrides):
    values = dict(
        name=name,
        engine_kind=engine_kind,
        host="db.internal",
        port=5432,
        database="analytics",
        username="reporter",
        password="s3cret",
    )
    values.update(overrides)
    return ConnectionProfile(**values)


@pytest.fixture
def sample_rows():
    return [{"id": i, "name": f"user{i}"} for i in range(1, 21)]


@pytest.fixture
def profile():
    return make_profile()


@pytest.fixture
def fake_adapter(sample_rows):
    return FakeAdapter(
        rows=sample_rows,
        tables=[TableInfo(name="orders", approx_row_count=120)],
    )


@pytest.fixture
def executor(fake_adapter):
    return QueryExecutor(
        adapters={
            EngineKind.POSTGRESQL: fake_adapter,
            EngineKind.MYSQL: fake_adapter,
        }
    )


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def authenticator(store):
    # Minimum bcrypt cost keeps the suite fast
    return SessionAuthenticator(store, bcrypt_rounds=4)


@pytest.fixture
def seeded(store, authenticator):
    """Store holding one account per role and one active connection."""

    async def _seed():
        users = {}
        for role in Role:
            users[role] = await authenticator.create_user(role.value, PASSWORD, role)
        warehouse = await store.create_connection(make_profile())
        warehouse = await store.activate_connection(warehouse.id)
        return users, warehouse

    users, warehouse = asyncio.run(_seed())
    return {"users": users, "connection": warehouse}


@pytest.fixture
def client(monkeypatch, store, authenticator, executor, seeded):
    monkeypatch.setattr(config, "pg_host", "")
    monkeypatch.setattr(config, "cookie_secure", False)
    app = create_app(store=store, executor=executor, authenticator=authenticator)
    with TestClient(app) as test_client:
        yield test_client


def login_headers(client, username, password=PASSWORD):
    """Log in through the API and return a Bearer header for the session.

    The client's cookie jar is cleared so several identities can be used
    from one client.
    """
    response = client.post(
        "/api/auth/login", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.text
    token = response.cookies.get("sessionToken")
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def admin_headers(client):
    return login_headers(client, "admin")


@pytest.fixture
def developer_headers(client):
    return login_headers(client, "developer")


@pytest.fixture
def business_headers(client):
    return login_headers(client, "business_user")
