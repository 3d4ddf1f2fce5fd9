# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""SQLAlchemy models for the kiosk credential store.

Six tables: organizations own admin users, verification sessions and
monthly reports; audit logs reference the admin user who acted; auth
tokens cache provider bearer tokens per scope.

All timestamps are naive UTC.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Base(DeclarativeBase):
    pass


class Organization(Base):
    """Tenant record."""
    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(Text, nullable=False, unique=True)
    contact_email = Column(Text, nullable=False)
    mfxid = Column(Text, nullable=False, unique=True)  # external billing id
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class AdminUser(Base):
    """Principal record. Role is one of admin, org_admin, user."""
    __tablename__ = "admin_users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    username = Column(String(50), nullable=False, unique=True)
    password = Column(Text, nullable=False)  # bcrypt hash
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    role = Column(String(20), nullable=False, default="user")
    is_active = Column(Boolean, nullable=False, default=True)
    last_login = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)


class VerificationSession(Base):
    """One BankID QR scan. The unique session_id enforces single use."""
    __tablename__ = "verification_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    session_id = Column(Text, nullable=False, unique=True)
    first_name = Column(Text, nullable=True)
    last_name = Column(Text, nullable=True)
    document_photo = Column(Text, nullable=True)  # base64
    age = Column(Integer, nullable=True)
    verified = Column(Boolean, nullable=False, default=False)
    verified_at = Column(DateTime, nullable=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=True)
    performed_by_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=True)
    source = Column(String(20), nullable=False, default="provider")  # provider | fallback
    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("ix_verification_sessions_org_created", "organization_id", "created_at"),
    )


class AuthToken(Base):
    """Cached provider bearer token."""
    __tablename__ = "auth_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    access_token = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=False)
    scope = Column(Text, nullable=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class MonthlyReport(Base):
    """Usage snapshot for one organization and month."""
    __tablename__ = "monthly_reports"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    total_scans = Column(Integer, nullable=False, default=0)
    successful_scans = Column(Integer, nullable=False, default=0)
    report_data = Column(Text, nullable=True)  # JSON detail blob
    generated_by_user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=False)
    is_invoiced = Column(Boolean, nullable=False, default=False)
    invoiced_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)


class AuditLog(Base):
    """Append-only record of a privileged mutation."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("admin_users.id"), nullable=False)
    action = Column(String(20), nullable=False)  # CREATE, UPDATE, DELETE, DEACTIVATE, ACTIVATE
    entity_type = Column(String(20), nullable=False)  # organization, user, report
    entity_id = Column(Integer, nullable=True)
    entity_name = Column(Text, nullable=True)
    details = Column(Text, nullable=True)  # JSON
    ip_address = Column(Text, nullable=True)
    user_agent = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
