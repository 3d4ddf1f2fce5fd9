# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Audit trail for privileged mutations.

Writes are best-effort: a failed audit insert is rolled back, logged at
ERROR with the ``audit_write_failed`` marker and counted in
``AuditMetrics``, and never propagates into the operation being audited.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError

from visleg.auth.roles import Principal
from visleg.db.store import CredentialStore

log = logging.getLogger(__name__)

# Actions
CREATE = "CREATE"
UPDATE = "UPDATE"
DELETE = "DELETE"
DEACTIVATE = "DEACTIVATE"
ACTIVATE = "ACTIVATE"

# Entity types
ORGANIZATION = "organization"
USER = "user"
REPORT = "report"


@dataclass
class AuditMetrics:
    """Audit write counters, exposed on the health endpoint."""

    written: int = 0
    failures: int = 0
    last_failure: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "written": self.written,
            "failures": self.failures,
            "lastFailure": self.last_failure,
        }


_metrics = AuditMetrics()


def get_audit_metrics() -> AuditMetrics:
    return _metrics


def reset_audit_metrics() -> None:
    global _metrics
    _metrics = AuditMetrics()


def get_client_ip(request: Optional[Request]) -> Optional[str]:
    """Client IP, honouring X-Forwarded-For from a reverse proxy."""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None


class AuditLogger:
    """Records audit entries through the credential store."""

    def __init__(self, store: CredentialStore):
        self._store = store

    def record(
        self,
        principal: Principal,
        action: str,
        entity_type: str,
        entity_id: Optional[int] = None,
        entity_name: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
        request: Optional[Request] = None,
    ) -> bool:
        """Write one audit entry. Returns False if the write failed."""
        try:
            self._store.add_audit_log(
                user_id=principal.user_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                entity_name=entity_name,
                details=json.dumps(details) if details is not None else None,
                ip_address=get_client_ip(request),
                user_agent=request.headers.get("user-agent") if request is not None else None,
            )
        except SQLAlchemyError as e:
            self._store.db.rollback()
            metrics = get_audit_metrics()
            metrics.failures += 1
            metrics.last_failure = f"{action} {entity_type} {entity_id}: {type(e).__name__}"
            log.error(
                f"audit_write_failed: action={action} entity={entity_type}:{entity_id} "
                f"user={principal.user_id}: {e}"
            )
            return False

        get_audit_metrics().written += 1
        log.info(
            f"AUDIT: {action} {entity_type}:{entity_id} ({entity_name}) by {principal.username}"
        )
        return True
