# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared fixtures for the VisLeg kiosk test suite.

Every test gets its own SQLite database file and an identity provider
simulated with ``httpx.MockTransport``. The FastAPI app is exercised
in-process through ``ASGITransport`` with ``get_db`` and
``get_http_client`` overridden.
"""

from __future__ import annotations

import asyncio
import os

# Configure before any visleg import reads the environment.
os.environ["VISLEG_DATABASE_URL"] = "sqlite:///:memory:"
os.environ["VISLEG_BCRYPT_COST"] = "4"
os.environ["VISLEG_ALLOW_FALLBACK_ON_PROVIDER_ERROR"] = "true"
os.environ["STOE_CLIENT_ID"] = "test-client"
os.environ["STOE_CLIENT_SECRET"] = "test-secret"
os.environ["STOE_TOKEN_URL"] = "https://idp.test/token"
os.environ["STOE_API_URL"] = "https://merchant.test"

import json
from typing import Any, Optional
from urllib.parse import parse_qs

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import sessionmaker

from visleg.audit.logger import reset_audit_metrics
from visleg.auth.roles import Principal, Role
from visleg.auth.session import reset_session_store
from visleg.db.session import build_engine, get_db, init_database
from visleg.db.store import CredentialStore
from visleg.main import app
from visleg.provider.http import get_http_client, reset_http_client
from visleg.seed import seed_database
from visleg.verification.engine import reset_fallback_metrics

TOKEN_URL = "https://idp.test/token"
SESSION_URL = "https://merchant.test/api/merchant/session"

DEFAULT_IDENTITY = {
    "firstName": "KARI",
    "lastName": "NORDMANN",
    "documentPhoto": "aGVsbG8=",
    "age": 41,
}


# =============================================================================
# Simulated identity provider
# =============================================================================


class FakeProvider:
    """Token endpoint plus merchant session endpoint.

    Attributes:
        token_status: HTTP status the token endpoint answers with
        session_status: HTTP status the session endpoint answers with
        identities: Per-session-id response bodies (default DEFAULT_IDENTITY)
        delay: Seconds to wait before answering, to force interleaving
        fail_transport: Raise a connect error instead of answering
    """

    def __init__(self) -> None:
        self.token_status = 200
        self.token_expires_in = 300
        self.session_status = 200
        self.identities: dict[str, dict[str, Any]] = {}
        self.delay = 0.0
        self.fail_transport = False
        self.token_requests: list[dict[str, list[str]]] = []
        self.session_requests: list[dict[str, Any]] = []
        self.session_auth_headers: list[Optional[str]] = []
        self._issued = 0

    async def handler(self, request: httpx.Request) -> httpx.Response:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail_transport:
            raise httpx.ConnectError("connection refused", request=request)

        url = str(request.url)
        if url == TOKEN_URL:
            self.token_requests.append(parse_qs(request.content.decode()))
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="invalid_client")
            self._issued += 1
            return httpx.Response(200, json={
                "access_token": f"token-{self._issued}",
                "expires_in": self.token_expires_in,
                "token_type": "Bearer",
                "scope": "vis-leg/identity_picture_age",
            })

        if url == SESSION_URL:
            body = json.loads(request.content)
            self.session_requests.append(body)
            self.session_auth_headers.append(request.headers.get("authorization"))
            if self.session_status != 200:
                return httpx.Response(self.session_status, text="session rejected")
            return httpx.Response(
                200, json=self.identities.get(body["sessionId"], DEFAULT_IDENTITY)
            )

        return httpx.Response(404, text="not found")


@pytest.fixture
def provider() -> FakeProvider:
    return FakeProvider()


@pytest_asyncio.fixture
async def http_client(provider: FakeProvider):
    async with httpx.AsyncClient(transport=httpx.MockTransport(provider.handler)) as client:
        yield client


# =============================================================================
# Database
# =============================================================================


@pytest.fixture
def engine(tmp_path):
    test_engine = build_engine(f"sqlite:///{tmp_path}/visleg-test.db")
    init_database(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def store(db) -> CredentialStore:
    return CredentialStore(db)


@pytest.fixture
def seeded(store: CredentialStore) -> dict[str, Any]:
    """Default organization with admin, orgadmin and user accounts."""
    seed_database(store)
    return {
        "org": store.list_organizations()[0],
        "admin": store.get_user_by_username("admin"),
        "orgadmin": store.get_user_by_username("orgadmin"),
        "user": store.get_user_by_username("user"),
    }


def principal_for(user) -> Principal:
    return Principal(
        user_id=user.id,
        username=user.username,
        role=Role(user.role),
        organization_id=user.organization_id,
    )


# =============================================================================
# Global state
# =============================================================================


@pytest.fixture(autouse=True)
def reset_singletons():
    reset_session_store()
    reset_audit_metrics()
    reset_fallback_metrics()
    reset_http_client()
    yield
    reset_session_store()
    reset_http_client()
    app.dependency_overrides.clear()


# =============================================================================
# HTTP client
# =============================================================================


@pytest_asyncio.fixture
async def client(session_factory, http_client):
    """ASGI client bound to the per-test database and fake provider."""

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_http_client] = lambda: http_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


async def login(client: AsyncClient, username: str, password: str) -> dict[str, str]:
    """Log in and return Authorization headers for the new session."""
    response = await client.post(
        "/api/admin/login", json={"username": username, "password": password}
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['sessionId']}"}
