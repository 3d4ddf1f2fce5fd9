# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""HTTP tests for reports, the dashboard and audit log exports."""

import csv
import io
from datetime import datetime

from tests.conftest import login
from visleg.db.models import VerificationSession
from visleg.reporting.service import AUDIT_HEADER, COMPREHENSIVE_HEADER, get_monthly_stats


def add_sessions(store, org_id, created_at, verified=2, pending=0, prefix="VisLeg-r"):
    for n in range(verified + pending):
        store.db.add(VerificationSession(
            session_id=f"{prefix}-{org_id}-{n}",
            first_name="OLA",
            last_name="NORDMANN",
            verified=n < verified,
            verified_at=created_at if n < verified else None,
            organization_id=org_id,
            created_at=created_at,
        ))
    store.db.commit()


def parse_csv(text):
    return list(csv.reader(io.StringIO(text)))


# =============================================================================
# Reports
# =============================================================================


class TestGenerateReport:
    async def test_totals_match_monthly_stats(self, client, seeded, store):
        org_id = seeded["org"].id
        add_sessions(store, org_id, datetime(2024, 3, 10), verified=3, pending=1)
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.post(
            "/api/admin/reports/generate",
            json={"organizationId": org_id, "month": 3, "year": 2024},
            headers=headers,
        )

        assert response.status_code == 200
        report = response.json()
        stats = get_monthly_stats(store, org_id, 3, 2024)
        assert report["totalScans"] == stats.total_scans == 4
        assert report["successfulScans"] == stats.successful_scans == 3
        assert report["isInvoiced"] is False
        assert report["reportData"]["period"] == {"month": 3, "year": 2024}
        assert report["reportData"]["generatedBy"] == "orgadmin"

    async def test_org_admin_foreign_org_forbidden(self, client, seeded, store):
        acme = store.create_organization("Acme", "a@acme.no", "ACME1")
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.post(
            "/api/admin/reports/generate",
            json={"organizationId": acme.id, "month": 3, "year": 2024},
            headers=headers,
        )

        assert response.status_code == 403

    async def test_period_validation(self, client, seeded):
        headers = await login(client, "admin", "admin123")

        for month, year in ((13, 2024), (0, 2024), (5, 2019), (5, 2031)):
            response = await client.post(
                "/api/admin/reports/generate",
                json={"organizationId": seeded["org"].id, "month": month, "year": year},
                headers=headers,
            )
            assert response.status_code == 400

    async def test_list_scoped_to_org(self, client, seeded, store):
        acme = store.create_organization("Acme", "a@acme.no", "ACME1")
        admin = await login(client, "admin", "admin123")
        for org_id in (seeded["org"].id, acme.id):
            await client.post(
                "/api/admin/reports/generate",
                json={"organizationId": org_id, "month": 1, "year": 2024},
                headers=admin,
            )

        everything = await client.get("/api/admin/reports", headers=admin)
        assert len(everything.json()) == 2

        filtered = await client.get(
            "/api/admin/reports", params={"organizationId": acme.id}, headers=admin
        )
        assert [r["organizationId"] for r in filtered.json()] == [acme.id]

        headers = await login(client, "orgadmin", "orgadmin123")
        own = await client.get("/api/admin/reports", headers=headers)
        assert [r["organizationId"] for r in own.json()] == [seeded["org"].id]

        foreign = await client.get(
            "/api/admin/reports", params={"organizationId": acme.id}, headers=headers
        )
        assert foreign.status_code == 403


class TestComprehensiveReport:
    async def test_csv_per_organization(self, client, seeded, store):
        acme = store.create_organization("Acme", "a@acme.no", "ACME1")
        add_sessions(store, acme.id, datetime(2024, 2, 5), verified=1, pending=1)
        headers = await login(client, "admin", "admin123")

        response = await client.post(
            "/api/admin/reports/generate-all", json={"month": 2, "year": 2024}, headers=headers
        )

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert 'filename="comprehensive-report-2024-02.csv"' in (
            response.headers["content-disposition"]
        )
        rows = parse_csv(response.text)
        assert rows[0] == COMPREHENSIVE_HEADER
        by_mfxid = {row[0]: row for row in rows[1:]}
        assert by_mfxid["ACME1"][1:6] == ["Acme", "2", "2024", "2", "1"]
        assert by_mfxid["TEST001"][4:6] == ["0", "0"]

    async def test_org_admin_forbidden(self, client, seeded):
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.post(
            "/api/admin/reports/generate-all", json={"month": 2, "year": 2024}, headers=headers
        )

        assert response.status_code == 403


class TestMarkInvoiced:
    async def test_mark_invoiced(self, client, seeded):
        headers = await login(client, "admin", "admin123")
        report = (await client.post(
            "/api/admin/reports/generate",
            json={"organizationId": seeded["org"].id, "month": 4, "year": 2024},
            headers=headers,
        )).json()

        response = await client.post(
            f"/api/admin/reports/{report['id']}/mark-invoiced", headers=headers
        )

        assert response.status_code == 200
        assert response.json()["isInvoiced"] is True
        assert response.json()["invoicedAt"].endswith("Z")

    async def test_unknown_report(self, client, seeded):
        headers = await login(client, "admin", "admin123")

        response = await client.post("/api/admin/reports/999/mark-invoiced", headers=headers)

        assert response.status_code == 404

    async def test_org_admin_forbidden(self, client, seeded):
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.post("/api/admin/reports/1/mark-invoiced", headers=headers)

        assert response.status_code == 403


# =============================================================================
# Dashboard
# =============================================================================


class TestDashboard:
    async def test_org_admin_shape(self, client, seeded, store):
        store.insert_verification_session(
            "VisLeg-now", "OLA", "NORDMANN", "", 30, seeded["org"].id, seeded["user"].id
        )
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.get("/api/admin/dashboard", headers=headers)

        assert response.status_code == 200
        data = response.json()
        assert data["organization"]["id"] == seeded["org"].id
        assert data["currentMonthStats"] == {"totalScans": 1, "successfulScans": 1}
        assert {"month", "year"} <= set(data)

    async def test_admin_shape(self, client, seeded, store):
        store.create_organization("Acme", "a@acme.no", "ACME1")
        headers = await login(client, "admin", "admin123")

        response = await client.get("/api/admin/dashboard", headers=headers)

        data = response.json()
        assert [e["organization"]["name"] for e in data["organizations"]] == [
            "Acme", "Test Organization",
        ]
        assert all(
            e["stats"] == {"totalScans": 0, "successfulScans": 0} for e in data["organizations"]
        )

    async def test_user_forbidden(self, client, seeded):
        headers = await login(client, "user", "user123")

        response = await client.get("/api/admin/dashboard", headers=headers)

        assert response.status_code == 403


# =============================================================================
# Audit logs
# =============================================================================


class TestAuditLogs:
    async def test_list_newest_first_with_username(self, client, seeded):
        headers = await login(client, "admin", "admin123")
        await client.post(
            "/api/admin/organizations",
            json={"name": "Acme", "contactEmail": "a@acme.no", "mfxid": "ACME1"},
            headers=headers,
        )
        await client.post(
            "/api/admin/users",
            json={"username": "bob", "password": "secret1", "organizationId": seeded["org"].id},
            headers=headers,
        )

        response = await client.get("/api/admin/audit-logs", headers=headers)

        assert response.status_code == 200
        entries = response.json()
        assert [(e["entityType"], e["action"]) for e in entries] == [
            ("user", "CREATE"), ("organization", "CREATE"),
        ]
        assert entries[0]["username"] == "admin"
        assert entries[0]["details"] == {"role": "user", "organizationId": seeded["org"].id}
        assert entries[1]["details"] == {"email": "a@acme.no", "mfxid": "ACME1"}

    async def test_limit(self, client, seeded):
        headers = await login(client, "admin", "admin123")
        for n in range(3):
            await client.post(
                "/api/admin/organizations",
                json={"name": f"Org {n}", "contactEmail": "o@o.no", "mfxid": f"O{n}"},
                headers=headers,
            )

        response = await client.get(
            "/api/admin/audit-logs", params={"limit": 2}, headers=headers
        )

        assert len(response.json()) == 2

    async def test_download_csv(self, client, seeded):
        headers = await login(client, "admin", "admin123")
        await client.post(
            "/api/admin/organizations",
            json={"name": "Acme", "contactEmail": "a@acme.no", "mfxid": "ACME1"},
            headers=headers,
        )

        response = await client.get("/api/admin/audit-logs/download", headers=headers)

        assert response.status_code == 200
        assert "audit-logs-" in response.headers["content-disposition"]
        rows = parse_csv(response.text)
        assert rows[0] == AUDIT_HEADER
        assert len(rows) == 2
        assert rows[1][2:5] == ["admin", "CREATE", "organization"]
        assert rows[1][6] == "Acme"

    async def test_org_admin_forbidden(self, client, seeded):
        headers = await login(client, "orgadmin", "orgadmin123")

        response = await client.get("/api/admin/audit-logs", headers=headers)

        assert response.status_code == 403
