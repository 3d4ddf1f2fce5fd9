# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""VisLeg kiosk configuration.

Fixed protocol constants live at the top. Everything else may be
overridden via environment variables.
"""

import os

# =============================================================================
# PROTOCOL CONSTANTS
# =============================================================================

SESSION_ID_PREFIX: str = "VisLeg-"
DEMO_SESSION_PREFIX: str = "VisLeg-demo"
MIN_SESSION_ID_LENGTH: int = 7
DELETE_CONFIRMATION: str = "DELETE"
DISPLAY_TIMEZONE: str = "Europe/Oslo"

# =============================================================================
# NETWORK
# =============================================================================

HTTP_HOST: str = os.getenv("VISLEG_HTTP_HOST", "0.0.0.0")
HTTP_PORT: int = int(os.getenv("VISLEG_HTTP_PORT", "5000"))


def _parse_cors_origins() -> list[str]:
    env = os.getenv("VISLEG_CORS_ORIGINS", "")
    if env:
        return [o.strip() for o in env.split(",") if o.strip()]
    return ["*"]


CORS_ORIGINS: list[str] = _parse_cors_origins()

# =============================================================================
# DATABASE
# =============================================================================

DATA_DIR: str = os.getenv("VISLEG_DATA_DIR", "./data")
DATABASE_URL: str = os.getenv(
    "VISLEG_DATABASE_URL", f"sqlite:///{DATA_DIR}/visleg.db"
)

# =============================================================================
# IDENTITY PROVIDER (Stø / BankID)
# =============================================================================

STOE_CLIENT_ID: str = os.getenv("STOE_CLIENT_ID", "")
STOE_CLIENT_SECRET: str = os.getenv("STOE_CLIENT_SECRET", "")
STOE_TOKEN_URL: str = os.getenv(
    "STOE_TOKEN_URL",
    "https://auth.current.bankid.no/auth/realms/current/protocol/openid-connect/token",
)
STOE_API_URL: str = os.getenv(
    "STOE_API_URL",
    "https://visleg-test-merchantservice-cnhvehb0cvdgggah.z01.azurefd.net",
)
STOE_SCOPE: str = os.getenv("STOE_SCOPE", "vis-leg/identity_picture_age")
PROVIDER_TIMEOUT_SECONDS: float = float(os.getenv("VISLEG_PROVIDER_TIMEOUT", "10.0"))

# Substitute a fallback identity when the provider rejects a session for
# reasons other than authentication.
ALLOW_FALLBACK_ON_PROVIDER_ERROR: bool = (
    os.getenv("VISLEG_ALLOW_FALLBACK_ON_PROVIDER_ERROR", "true").lower() == "true"
)

# =============================================================================
# AUTHENTICATION
# =============================================================================

SESSION_TTL_SECONDS: int = int(os.getenv("VISLEG_SESSION_TTL_SECONDS", "86400"))
SESSION_SWEEP_INTERVAL: float = float(os.getenv("VISLEG_SESSION_SWEEP_INTERVAL", "3600"))
TOKEN_SWEEP_INTERVAL: float = float(os.getenv("VISLEG_TOKEN_SWEEP_INTERVAL", "60"))
BCRYPT_COST_FACTOR: int = int(os.getenv("VISLEG_BCRYPT_COST", "10"))

# =============================================================================
# STARTUP
# =============================================================================

SEED_ON_STARTUP: bool = os.getenv("VISLEG_SEED_ON_STARTUP", "false").lower() == "true"

# =============================================================================
# LOGGING
# =============================================================================

LOG_LEVEL: str = os.getenv("VISLEG_LOG_LEVEL", "INFO")

# =============================================================================
# AUDIT / REPORTING
# =============================================================================

AUDIT_LIST_DEFAULT_LIMIT: int = 100
AUDIT_EXPORT_LIMIT: int = 1000
