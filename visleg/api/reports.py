# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Report, dashboard and audit log endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from visleg import config
from visleg.auth.dependencies import require_admin, require_full_admin
from visleg.auth.roles import Principal
from visleg.db.session import get_db
from visleg.db.store import CredentialStore
from visleg.reporting import service as reporting

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api/admin", tags=["reports"])


class PeriodRequest(BaseModel):
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2020, le=2030)


class GenerateReportRequest(PeriodRequest):
    model_config = ConfigDict(populate_by_name=True)

    organization_id: int = Field(..., alias="organizationId")


def _csv_response(filename: str, content: str) -> Response:
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


# =============================================================================
# Reports
# =============================================================================


@router.get("/reports")
async def list_reports(
    organization_id: Optional[int] = Query(None, alias="organizationId"),
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> list[dict]:
    reports = reporting.list_reports_for(CredentialStore(db), principal, organization_id)
    return [reporting.report_to_dict(r) for r in reports]


@router.post("/reports/generate")
async def generate_report(
    body: GenerateReportRequest,
    request: Request,
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> dict:
    report = reporting.generate_report_for(
        CredentialStore(db),
        principal,
        organization_id=body.organization_id,
        month=body.month,
        year=body.year,
        request=request,
    )
    return reporting.report_to_dict(report)


@router.post("/reports/generate-all")
async def generate_comprehensive_report(
    body: PeriodRequest,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> Response:
    """Cross-tenant CSV for one month. Streamed, never stored."""
    filename, content = reporting.build_comprehensive_csv(
        CredentialStore(db), body.month, body.year
    )
    return _csv_response(filename, content)


@router.post("/reports/{report_id}/mark-invoiced")
async def mark_report_invoiced(
    report_id: int,
    request: Request,
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> dict:
    report = reporting.mark_invoiced(CredentialStore(db), principal, report_id, request)
    return reporting.report_to_dict(report)


# =============================================================================
# Dashboard
# =============================================================================


@router.get("/dashboard")
async def dashboard(
    principal: Principal = require_admin,
    db: Session = Depends(get_db),
) -> dict:
    return reporting.dashboard_for(CredentialStore(db), principal)


# =============================================================================
# Audit logs
# =============================================================================


@router.get("/audit-logs")
async def list_audit_logs(
    limit: int = Query(config.AUDIT_LIST_DEFAULT_LIMIT, ge=1, le=config.AUDIT_EXPORT_LIMIT),
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> list[dict]:
    entries = CredentialStore(db).list_audit_logs(limit=limit)
    return [reporting.audit_log_to_dict(entry, username) for entry, username in entries]


@router.get("/audit-logs/download")
async def download_audit_logs(
    principal: Principal = require_full_admin,
    db: Session = Depends(get_db),
) -> Response:
    filename, content = reporting.build_audit_csv(CredentialStore(db), config.AUDIT_EXPORT_LIMIT)
    log.info(f"Audit log export downloaded by {principal.username}")
    return _csv_response(filename, content)
