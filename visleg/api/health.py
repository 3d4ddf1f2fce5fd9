# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Liveness probe."""

from fastapi import APIRouter

from visleg.audit.logger import get_audit_metrics
from visleg.auth.session import get_session_store
from visleg.db.models import utcnow
from visleg.reporting.service import iso
from visleg.verification.engine import get_fallback_metrics

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
async def health() -> dict:
    """Service status plus audit and degraded-mode counters."""
    return {
        "status": "ok",
        "timestamp": iso(utcnow()),
        "audit": get_audit_metrics().to_dict(),
        "verification": get_fallback_metrics().to_dict(),
        "activeSessions": get_session_store().session_count,
    }
