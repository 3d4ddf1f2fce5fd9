# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""VisLeg QR session verification."""

from visleg.verification.engine import (
    DEMO_ROSTER,
    FALLBACK_ROSTER,
    SessionProtocolEngine,
    VerificationResult,
    format_used_time,
    is_demo_session,
    validate_session_id,
    verify_demo,
)
