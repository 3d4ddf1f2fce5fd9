# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the health endpoint and database seeding."""

from tests.conftest import login
from visleg.auth.passwords import verify_password
from visleg.seed import DEFAULT_USERS, seed_database


class TestHealth:
    async def test_health(self, client):
        response = await client.get("/api/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["timestamp"].endswith("Z")
        assert data["audit"] == {"written": 0, "failures": 0, "lastFailure": None}
        assert data["verification"]["fallbacks"] == 0
        assert data["activeSessions"] == 0

    async def test_counts_sessions_and_fallbacks(self, client, seeded, provider):
        headers = await login(client, "user", "user123")
        provider.session_status = 503
        await client.post("/api/verify", json={"sessionId": "VisLeg-degraded"}, headers=headers)

        data = (await client.get("/api/health")).json()

        assert data["activeSessions"] == 1
        assert data["verification"]["fallbacks"] == 1
        assert "status=503" in data["verification"]["lastReason"]


class TestSeed:
    def test_seed_creates_defaults(self, store):
        created = seed_database(store)

        assert created == {"organizations": 1, "users": 3}
        org = store.list_organizations()[0]
        assert (org.name, org.mfxid) == ("Test Organization", "TEST001")
        for username, password, role in DEFAULT_USERS:
            user = store.get_user_by_username(username)
            assert user.role == role.value
            assert user.organization_id == org.id
            assert verify_password(password, user.password)

    def test_seed_is_idempotent(self, store):
        seed_database(store)

        assert seed_database(store) == {"organizations": 0, "users": 0}
        assert len(store.list_users()) == 3
