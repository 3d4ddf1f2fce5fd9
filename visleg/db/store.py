# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Credential store: data access for every kiosk table.

``CredentialStore`` wraps a request-scoped SQLAlchemy ``Session``. Each
mutating method commits on its own so that a later failure in the same
request (for example a best-effort audit write) cannot undo it.

Uniqueness violations surface as ``ConflictError``; the verification
session insert instead reports the conflict to the caller, because the
unique ``session_id`` constraint is how single use is enforced.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from visleg.db.models import (
    AdminUser,
    AuditLog,
    AuthToken,
    MonthlyReport,
    Organization,
    VerificationSession,
    utcnow,
)
from visleg.exceptions import ConflictError

log = logging.getLogger(__name__)


class CredentialStore:
    """Repository over the kiosk tables."""

    def __init__(self, db: Session):
        self.db = db

    def _commit(self) -> None:
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise

    # =========================================================================
    # Organizations
    # =========================================================================

    def get_organization(self, org_id: int) -> Optional[Organization]:
        return self.db.get(Organization, org_id)

    def list_organizations(self, org_id: Optional[int] = None) -> list[Organization]:
        """List organizations, optionally restricted to a single id."""
        stmt = select(Organization).order_by(Organization.name)
        if org_id is not None:
            stmt = stmt.where(Organization.id == org_id)
        return list(self.db.scalars(stmt))

    def create_organization(self, name: str, contact_email: str, mfxid: str) -> Organization:
        """Create an organization.

        Raises:
            ConflictError: If the name or MFX ID is already taken
        """
        if self.db.scalar(select(Organization.id).where(Organization.name == name)):
            raise ConflictError(f"Organization name already exists: {name}")
        if self.db.scalar(select(Organization.id).where(Organization.mfxid == mfxid)):
            raise ConflictError(f"MFX ID already exists: {mfxid}")

        org = Organization(name=name, contact_email=contact_email, mfxid=mfxid)
        self.db.add(org)
        try:
            self._commit()
        except IntegrityError:
            raise ConflictError("Organization name or MFX ID already exists")
        self.db.refresh(org)
        log.info(f"Created organization {org.id} ({org.name})")
        return org

    def set_organization_active(self, org: Organization, active: bool) -> Organization:
        org.is_active = active
        org.updated_at = utcnow()
        self._commit()
        self.db.refresh(org)
        return org

    def organization_references(self, org_id: int) -> dict[str, int]:
        """Count rows that still point at an organization."""
        return {
            "users": self.db.scalar(
                select(func.count(AdminUser.id)).where(AdminUser.organization_id == org_id)
            ) or 0,
            "sessions": self.db.scalar(
                select(func.count(VerificationSession.id)).where(
                    VerificationSession.organization_id == org_id
                )
            ) or 0,
            "reports": self.db.scalar(
                select(func.count(MonthlyReport.id)).where(MonthlyReport.organization_id == org_id)
            ) or 0,
        }

    def delete_organization(self, org: Organization) -> None:
        self.db.delete(org)
        self._commit()

    # =========================================================================
    # Admin users
    # =========================================================================

    def get_user(self, user_id: int) -> Optional[AdminUser]:
        return self.db.get(AdminUser, user_id)

    def get_user_by_username(self, username: str) -> Optional[AdminUser]:
        return self.db.scalar(select(AdminUser).where(AdminUser.username == username))

    def list_users(self, org_id: Optional[int] = None) -> list[AdminUser]:
        """List users, optionally restricted to one organization."""
        stmt = select(AdminUser).order_by(AdminUser.username)
        if org_id is not None:
            stmt = stmt.where(AdminUser.organization_id == org_id)
        return list(self.db.scalars(stmt))

    def create_user(
        self,
        username: str,
        password_hash: str,
        organization_id: int,
        role: str = "user",
    ) -> AdminUser:
        """Create a user.

        Raises:
            ConflictError: If the username is already taken
        """
        if self.get_user_by_username(username) is not None:
            raise ConflictError(f"Username already exists: {username}")

        user = AdminUser(
            username=username,
            password=password_hash,
            organization_id=organization_id,
            role=role,
        )
        self.db.add(user)
        try:
            self._commit()
        except IntegrityError:
            raise ConflictError(f"Username already exists: {username}")
        self.db.refresh(user)
        log.info(f"Created user {user.id} ({user.username}) role={role} org={organization_id}")
        return user

    def set_user_active(self, user: AdminUser, active: bool) -> AdminUser:
        user.is_active = active
        user.updated_at = utcnow()
        self._commit()
        self.db.refresh(user)
        return user

    def update_last_login(self, user: AdminUser) -> None:
        user.last_login = utcnow()
        self._commit()

    def user_references(self, user_id: int) -> dict[str, int]:
        """Count audit entries and reports authored by a user."""
        return {
            "audit_logs": self.db.scalar(
                select(func.count(AuditLog.id)).where(AuditLog.user_id == user_id)
            ) or 0,
            "reports": self.db.scalar(
                select(func.count(MonthlyReport.id)).where(
                    MonthlyReport.generated_by_user_id == user_id
                )
            ) or 0,
        }

    def delete_user(self, user: AdminUser) -> None:
        """Delete a user, clearing the performer on sessions they verified."""
        self.db.query(VerificationSession).filter(
            VerificationSession.performed_by_user_id == user.id
        ).update({VerificationSession.performed_by_user_id: None}, synchronize_session=False)
        self.db.delete(user)
        self._commit()

    # =========================================================================
    # Verification sessions
    # =========================================================================

    def get_verification_session(self, session_id: str) -> Optional[VerificationSession]:
        return self.db.scalar(
            select(VerificationSession).where(VerificationSession.session_id == session_id)
        )

    def insert_verification_session(
        self,
        session_id: str,
        first_name: str,
        last_name: str,
        document_photo: str,
        age: Optional[int],
        organization_id: Optional[int],
        performed_by_user_id: Optional[int],
        source: str = "provider",
        verified_at: Optional[datetime] = None,
    ) -> tuple[VerificationSession, bool]:
        """Insert a verified session row in one atomic step.

        Returns:
            Tuple of (row, created). When another writer already holds
            the session id, ``created`` is False and the row is theirs.
        """
        row = VerificationSession(
            session_id=session_id,
            first_name=first_name,
            last_name=last_name,
            document_photo=document_photo,
            age=age,
            verified=True,
            verified_at=verified_at or utcnow(),
            organization_id=organization_id,
            performed_by_user_id=performed_by_user_id,
            source=source,
        )
        self.db.add(row)
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            existing = self.get_verification_session(session_id)
            if existing is None:
                # Integrity failure was not the session id (e.g. a dangling FK)
                raise
            log.info(f"Session id conflict on insert: {session_id}")
            return existing, False
        self.db.refresh(row)
        return row, True

    def count_sessions(
        self,
        start: datetime,
        end: datetime,
        org_id: Optional[int] = None,
        verified_only: bool = False,
    ) -> int:
        """Count sessions created in ``[start, end)``."""
        conditions = [
            VerificationSession.created_at >= start,
            VerificationSession.created_at < end,
        ]
        if org_id is not None:
            conditions.append(VerificationSession.organization_id == org_id)
        if verified_only:
            conditions.append(VerificationSession.verified.is_(True))
        return self.db.scalar(
            select(func.count(VerificationSession.id)).where(and_(*conditions))
        ) or 0

    # =========================================================================
    # Provider tokens
    # =========================================================================

    def get_valid_token(self, scope: str, now: Optional[datetime] = None) -> Optional[AuthToken]:
        """Return the longest-lived non-expired token for a scope."""
        now = now or utcnow()
        return self.db.scalar(
            select(AuthToken)
            .where(AuthToken.scope == scope, AuthToken.expires_at > now)
            .order_by(AuthToken.expires_at.desc())
            .limit(1)
        )

    def save_token(self, access_token: str, expires_at: datetime, scope: str) -> AuthToken:
        token = AuthToken(access_token=access_token, expires_at=expires_at, scope=scope)
        self.db.add(token)
        self._commit()
        return token

    def delete_expired_tokens(self, now: Optional[datetime] = None) -> int:
        now = now or utcnow()
        deleted = (
            self.db.query(AuthToken)
            .filter(AuthToken.expires_at <= now)
            .delete(synchronize_session=False)
        )
        self._commit()
        return deleted

    # =========================================================================
    # Monthly reports
    # =========================================================================

    def create_report(
        self,
        organization_id: int,
        month: int,
        year: int,
        total_scans: int,
        successful_scans: int,
        report_data: str,
        generated_by_user_id: int,
    ) -> MonthlyReport:
        report = MonthlyReport(
            organization_id=organization_id,
            month=month,
            year=year,
            total_scans=total_scans,
            successful_scans=successful_scans,
            report_data=report_data,
            generated_by_user_id=generated_by_user_id,
        )
        self.db.add(report)
        self._commit()
        self.db.refresh(report)
        return report

    def get_report(self, report_id: int) -> Optional[MonthlyReport]:
        return self.db.get(MonthlyReport, report_id)

    def list_reports(self, org_id: Optional[int] = None) -> list[MonthlyReport]:
        """List reports newest period first."""
        stmt = select(MonthlyReport).order_by(
            MonthlyReport.year.desc(), MonthlyReport.month.desc(), MonthlyReport.id.desc()
        )
        if org_id is not None:
            stmt = stmt.where(MonthlyReport.organization_id == org_id)
        return list(self.db.scalars(stmt))

    def mark_report_invoiced(self, report: MonthlyReport) -> MonthlyReport:
        report.is_invoiced = True
        report.invoiced_at = utcnow()
        self._commit()
        self.db.refresh(report)
        return report

    # =========================================================================
    # Audit logs
    # =========================================================================

    def add_audit_log(
        self,
        user_id: int,
        action: str,
        entity_type: str,
        entity_id: Optional[int],
        entity_name: Optional[str],
        details: Optional[str],
        ip_address: Optional[str],
        user_agent: Optional[str],
    ) -> AuditLog:
        entry = AuditLog(
            user_id=user_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            entity_name=entity_name,
            details=details,
            ip_address=ip_address,
            user_agent=user_agent,
        )
        self.db.add(entry)
        self._commit()
        return entry

    def list_audit_logs(self, limit: int = 100) -> list[tuple[AuditLog, Optional[str]]]:
        """Newest audit entries joined with the acting username."""
        stmt = (
            select(AuditLog, AdminUser.username)
            .outerjoin(AdminUser, AdminUser.id == AuditLog.user_id)
            .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
            .limit(limit)
        )
        return [(row[0], row[1]) for row in self.db.execute(stmt)]
