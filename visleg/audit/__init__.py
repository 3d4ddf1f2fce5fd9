# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Audit trail."""

from visleg.audit.logger import (
    AuditLogger,
    AuditMetrics,
    get_audit_metrics,
    get_client_ip,
    reset_audit_metrics,
)
