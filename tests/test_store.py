# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Tests for the credential store and monthly statistics."""

from datetime import datetime

import pytest

from visleg.auth.passwords import hash_password
from visleg.db.models import VerificationSession
from visleg.db.store import CredentialStore
from visleg.exceptions import ConflictError
from visleg.reporting.service import get_monthly_stats, month_bounds


def add_session(
    store: CredentialStore,
    session_id: str,
    created_at: datetime,
    org_id,
    verified: bool = True,
) -> VerificationSession:
    row = VerificationSession(
        session_id=session_id,
        first_name="OLA",
        last_name="NORDMANN",
        verified=verified,
        verified_at=created_at if verified else None,
        organization_id=org_id,
        created_at=created_at,
    )
    store.db.add(row)
    store.db.commit()
    return row


@pytest.fixture
def second_org(store):
    return store.create_organization("Acme AS", "post@acme.no", "MFX-ACME")


# =============================================================================
# Organizations and users
# =============================================================================


class TestOrganizations:
    def test_create_and_list_sorted(self, store):
        store.create_organization("Zeta", "z@z.no", "MFX-Z")
        store.create_organization("Alfa", "a@a.no", "MFX-A")

        names = [o.name for o in store.list_organizations()]
        assert names == ["Alfa", "Zeta"]

    def test_list_restricted_to_id(self, store):
        org = store.create_organization("Alfa", "a@a.no", "MFX-A")
        store.create_organization("Zeta", "z@z.no", "MFX-Z")

        assert [o.id for o in store.list_organizations(org_id=org.id)] == [org.id]

    def test_new_organization_is_active(self, store):
        org = store.create_organization("Alfa", "a@a.no", "MFX-A")
        assert org.is_active is True
        assert org.created_at is not None

    def test_duplicate_name_conflicts(self, store):
        store.create_organization("Alfa", "a@a.no", "MFX-A")
        with pytest.raises(ConflictError):
            store.create_organization("Alfa", "b@a.no", "MFX-B")

    def test_duplicate_mfxid_conflicts(self, store):
        store.create_organization("Alfa", "a@a.no", "MFX-A")
        with pytest.raises(ConflictError) as exc_info:
            store.create_organization("Beta", "b@b.no", "MFX-A")
        assert exc_info.value.status_code == 409

    def test_references(self, store, seeded):
        refs = store.organization_references(seeded["org"].id)
        assert refs == {"users": 3, "sessions": 0, "reports": 0}


class TestUsers:
    def test_duplicate_username_conflicts(self, store, seeded):
        with pytest.raises(ConflictError):
            store.create_user("admin", hash_password("x", 4), seeded["org"].id)

    def test_list_users_by_org(self, store, seeded, second_org):
        store.create_user("bob", hash_password("x", 4), second_org.id, "org_admin")

        assert [u.username for u in store.list_users(org_id=second_org.id)] == ["bob"]
        assert len(store.list_users()) == 4

    def test_delete_user_keeps_sessions(self, store, seeded):
        user = seeded["user"]
        store.insert_verification_session(
            "VisLeg-kept", "OLA", "NORDMANN", "", 30, seeded["org"].id, user.id
        )

        store.delete_user(user)
        store.db.expire_all()

        row = store.get_verification_session("VisLeg-kept")
        assert row is not None
        assert row.performed_by_user_id is None
        assert store.get_user_by_username("user") is None


# =============================================================================
# Verification sessions
# =============================================================================


class TestInsertVerificationSession:
    def test_insert_then_conflict(self, store, seeded):
        org_id = seeded["org"].id
        first, created = store.insert_verification_session(
            "VisLeg-one", "KARI", "NORDMANN", "", 41, org_id, seeded["user"].id
        )
        assert created

        second, created = store.insert_verification_session(
            "VisLeg-one", "OLA", "HANSEN", "", 50, org_id, seeded["admin"].id
        )

        assert not created
        assert second.id == first.id
        assert second.first_name == "KARI"


# =============================================================================
# Monthly statistics
# =============================================================================


class TestMonthBounds:
    def test_regular_month(self):
        assert month_bounds(3, 2024) == (datetime(2024, 3, 1), datetime(2024, 4, 1))

    def test_december_rolls_year(self):
        assert month_bounds(12, 2024) == (datetime(2024, 12, 1), datetime(2025, 1, 1))


class TestMonthlyStats:
    def test_half_open_interval(self, store, seeded):
        org_id = seeded["org"].id
        add_session(store, "VisLeg-feb-last", datetime(2024, 2, 29, 23, 59, 59), org_id)
        add_session(store, "VisLeg-mar-first", datetime(2024, 3, 1, 0, 0, 0), org_id)
        add_session(store, "VisLeg-mar-last", datetime(2024, 3, 31, 23, 59, 59), org_id)
        add_session(store, "VisLeg-apr-first", datetime(2024, 4, 1, 0, 0, 0), org_id)

        stats = get_monthly_stats(store, org_id, 3, 2024)

        assert stats.total_scans == 2
        assert stats.successful_scans == 2

    def test_successful_never_exceeds_total(self, store, seeded):
        org_id = seeded["org"].id
        add_session(store, "VisLeg-ok", datetime(2024, 5, 2), org_id)
        add_session(store, "VisLeg-pending", datetime(2024, 5, 3), org_id, verified=False)

        stats = get_monthly_stats(store, org_id, 5, 2024)

        assert stats.total_scans == 2
        assert stats.successful_scans == 1
        assert stats.to_dict() == {"totalScans": 2, "successfulScans": 1}

    def test_organizations_sum_to_global(self, store, seeded, second_org):
        add_session(store, "VisLeg-a1", datetime(2024, 6, 1), seeded["org"].id)
        add_session(store, "VisLeg-a2", datetime(2024, 6, 2), seeded["org"].id)
        add_session(store, "VisLeg-b1", datetime(2024, 6, 3), second_org.id)

        per_org = [
            get_monthly_stats(store, org.id, 6, 2024).total_scans
            for org in store.list_organizations()
        ]

        assert per_org == [1, 2]
        assert sum(per_org) == get_monthly_stats(store, None, 6, 2024).total_scans

    def test_empty_month(self, store, seeded):
        stats = get_monthly_stats(store, seeded["org"].id, 1, 2021)
        assert (stats.total_scans, stats.successful_scans) == (0, 0)
