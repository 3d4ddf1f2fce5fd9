# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Monthly usage statistics, report snapshots and CSV exports.

A month is the half-open UTC interval from the first of the month to
the first of the next month. Demo verifications are never persisted
and so never counted.
"""

import csv
import io
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from fastapi import Request

from visleg.audit import logger as audit
from visleg.audit.logger import AuditLogger
from visleg.auth.roles import Capability, Principal
from visleg.db.models import MonthlyReport, Organization, utcnow
from visleg.db.store import CredentialStore
from visleg.exceptions import AuthorizationError, NotFoundError

log = logging.getLogger(__name__)

COMPREHENSIVE_HEADER = [
    "MFX ID",
    "Organization Name",
    "Month",
    "Year",
    "Scan Count",
    "Successful Scans",
    "Generated At",
]

AUDIT_HEADER = [
    "Timestamp",
    "User ID",
    "Username",
    "Action",
    "Entity Type",
    "Entity ID",
    "Entity Name",
    "Details",
    "IP Address",
]


@dataclass
class MonthlyStats:
    total_scans: int
    successful_scans: int

    def to_dict(self) -> dict[str, int]:
        return {"totalScans": self.total_scans, "successfulScans": self.successful_scans}


def iso(value: Optional[datetime]) -> Optional[str]:
    """Render a stored naive-UTC timestamp as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    return value.isoformat() + "Z"


def month_bounds(month: int, year: int) -> tuple[datetime, datetime]:
    """Return ``[start, end)`` for a calendar month."""
    start = datetime(year, month, 1)
    end = datetime(year + 1, 1, 1) if month == 12 else datetime(year, month + 1, 1)
    return start, end


def get_monthly_stats(
    store: CredentialStore,
    org_id: Optional[int],
    month: int,
    year: int,
) -> MonthlyStats:
    """Count sessions created in the month, and the verified subset.

    ``org_id=None`` counts across every organization.
    """
    start, end = month_bounds(month, year)
    return MonthlyStats(
        total_scans=store.count_sessions(start, end, org_id=org_id),
        successful_scans=store.count_sessions(start, end, org_id=org_id, verified_only=True),
    )


def generate_report(
    store: CredentialStore,
    principal: Principal,
    organization: Organization,
    month: int,
    year: int,
) -> MonthlyReport:
    """Snapshot an organization's monthly stats into a report row."""
    stats = get_monthly_stats(store, organization.id, month, year)
    report_data = {
        "organization": {
            "id": organization.id,
            "name": organization.name,
            "contactEmail": organization.contact_email,
        },
        "period": {"month": month, "year": year},
        "statistics": stats.to_dict(),
        "generatedAt": iso(utcnow()),
        "generatedBy": principal.username,
    }
    report = store.create_report(
        organization_id=organization.id,
        month=month,
        year=year,
        total_scans=stats.total_scans,
        successful_scans=stats.successful_scans,
        report_data=json.dumps(report_data),
        generated_by_user_id=principal.user_id,
    )
    log.info(
        f"Generated report {report.id} for org {organization.id} "
        f"{year}-{month:02d}: {stats.total_scans} scans"
    )
    return report


def report_to_dict(report: MonthlyReport) -> dict[str, Any]:
    return {
        "id": report.id,
        "organizationId": report.organization_id,
        "month": report.month,
        "year": report.year,
        "totalScans": report.total_scans,
        "successfulScans": report.successful_scans,
        "reportData": json.loads(report.report_data) if report.report_data else None,
        "generatedByUserId": report.generated_by_user_id,
        "isInvoiced": report.is_invoiced,
        "invoicedAt": iso(report.invoiced_at),
        "createdAt": iso(report.created_at),
    }


def _to_csv(header: list[str], rows: list[list[Any]]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def build_comprehensive_csv(store: CredentialStore, month: int, year: int) -> tuple[str, str]:
    """Cross-tenant usage export for one month. Never persisted.

    Returns:
        Tuple of (filename, csv text)
    """
    generated_at = iso(utcnow())
    rows = []
    for org in store.list_organizations():
        stats = get_monthly_stats(store, org.id, month, year)
        rows.append([
            org.mfxid,
            org.name,
            month,
            year,
            stats.total_scans,
            stats.successful_scans,
            generated_at,
        ])
    filename = f"comprehensive-report-{year}-{month:02d}.csv"
    log.info(f"Built comprehensive report for {year}-{month:02d} ({len(rows)} organizations)")
    return filename, _to_csv(COMPREHENSIVE_HEADER, rows)


def audit_log_to_dict(entry, username: Optional[str]) -> dict[str, Any]:
    return {
        "id": entry.id,
        "userId": entry.user_id,
        "username": username or "Unknown User",
        "action": entry.action,
        "entityType": entry.entity_type,
        "entityId": entry.entity_id,
        "entityName": entry.entity_name,
        "details": json.loads(entry.details) if entry.details else None,
        "ipAddress": entry.ip_address,
        "userAgent": entry.user_agent,
        "createdAt": iso(entry.created_at),
    }


def build_audit_csv(store: CredentialStore, limit: int) -> tuple[str, str]:
    """Export the most recent audit entries.

    Returns:
        Tuple of (filename, csv text)
    """
    rows = []
    for entry, username in store.list_audit_logs(limit=limit):
        rows.append([
            iso(entry.created_at),
            entry.user_id,
            username or "Unknown User",
            entry.action,
            entry.entity_type,
            entry.entity_id if entry.entity_id is not None else "",
            entry.entity_name or "",
            entry.details or "",
            entry.ip_address or "",
        ])
    filename = f"audit-logs-{utcnow().strftime('%Y-%m-%d')}.csv"
    return filename, _to_csv(AUDIT_HEADER, rows)


# =============================================================================
# Role-scoped entry points
# =============================================================================


def list_reports_for(
    store: CredentialStore,
    principal: Principal,
    organization_id: Optional[int] = None,
) -> list[MonthlyReport]:
    """Reports visible to ``principal``.

    Admins see every organization's reports unless they filter by
    ``organization_id``; org admins only ever see their own.
    """
    principal.require(Capability.GENERATE_REPORTS, "Admin access required")
    if organization_id is not None and not principal.in_scope(
        organization_id, Capability.VIEW_ALL_REPORTS
    ):
        raise AuthorizationError("Access denied")
    if organization_id is None:
        organization_id = principal.scope_organization_id(Capability.VIEW_ALL_REPORTS)
    return store.list_reports(org_id=organization_id)


def generate_report_for(
    store: CredentialStore,
    principal: Principal,
    organization_id: int,
    month: int,
    year: int,
    request: Optional[Request] = None,
) -> MonthlyReport:
    principal.require(Capability.GENERATE_REPORTS, "Admin access required")
    if not principal.in_scope(organization_id, Capability.VIEW_ALL_REPORTS):
        raise AuthorizationError("Access denied")
    organization = store.get_organization(organization_id)
    if organization is None:
        raise NotFoundError("Organization")

    report = generate_report(store, principal, organization, month, year)
    AuditLogger(store).record(
        principal,
        audit.CREATE,
        audit.REPORT,
        entity_id=report.id,
        entity_name=f"{organization.name} {year}-{month:02d}",
        details={"organizationId": organization.id, "month": month, "year": year},
        request=request,
    )
    return report


def mark_invoiced(
    store: CredentialStore,
    principal: Principal,
    report_id: int,
    request: Optional[Request] = None,
) -> MonthlyReport:
    principal.require(Capability.MARK_REPORT_INVOICED, "Admin access required")
    report = store.get_report(report_id)
    if report is None:
        raise NotFoundError("Report")

    report = store.mark_report_invoiced(report)
    AuditLogger(store).record(
        principal,
        audit.UPDATE,
        audit.REPORT,
        entity_id=report.id,
        entity_name=f"report {report.year}-{report.month:02d}",
        details={"isInvoiced": True},
        request=request,
    )
    return report


def dashboard_for(
    store: CredentialStore,
    principal: Principal,
    now: Optional[datetime] = None,
) -> dict[str, Any]:
    """Current-month stats: every organization for admins, own for org admins."""
    from visleg.admin.organizations import org_to_dict

    principal.require(Capability.ACCESS_ADMIN, "Admin access required")
    now = now or utcnow()
    month, year = now.month, now.year

    if principal.can(Capability.VIEW_ALL_ORGANIZATIONS):
        return {
            "organizations": [
                {
                    "organization": org_to_dict(org),
                    "stats": get_monthly_stats(store, org.id, month, year).to_dict(),
                }
                for org in store.list_organizations()
            ],
            "month": month,
            "year": year,
        }

    organization = store.get_organization(principal.organization_id)
    return {
        "organization": org_to_dict(organization) if organization else None,
        "currentMonthStats": get_monthly_stats(
            store, principal.organization_id, month, year
        ).to_dict(),
        "month": month,
        "year": year,
    }
