# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Kiosk exceptions mapped to HTTP status codes and error codes.

Every error raised across the core carries a stable ``code`` (rendered
as the ``error`` field of the JSON body), a user-facing ``message`` and
the ``status_code`` the HTTP boundary responds with.
"""

from datetime import datetime
from typing import Any, Optional


class KioskError(Exception):
    """Base exception for kiosk errors."""

    status_code: int = 500

    def __init__(
        self,
        code: str,
        message: str,
        status_code: Optional[int] = None,
        extra: Optional[dict[str, Any]] = None,
    ):
        self.code = code
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        self.extra = extra or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"message": self.message, "error": self.code}
        body.update(self.extra)
        return body


class ValidationError(KioskError):
    """Malformed input."""

    status_code = 400

    def __init__(self, message: str = "Invalid request data", details: Any = None):
        extra = {"details": details} if details is not None else None
        super().__init__(code="VALIDATION_ERROR", message=message, extra=extra)

    @classmethod
    def confirmation_required(cls) -> "ValidationError":
        return cls(message="You must type 'DELETE' to confirm")


class InvalidSessionIdError(KioskError):
    """QR payload does not look like a VisLeg session id."""

    status_code = 400

    def __init__(self) -> None:
        super().__init__(
            code="INVALID_SESSION_ID",
            message="Invalid sessionId format. SessionId must start with 'VisLeg-'",
        )


class AuthenticationError(KioskError):
    """Missing, invalid or expired credentials or session."""

    status_code = 401

    def __init__(self, message: str = "Authentication required"):
        super().__init__(code="UNAUTHORIZED", message=message)

    @classmethod
    def missing(cls) -> "AuthenticationError":
        return cls("Authentication required")

    @classmethod
    def invalid_session(cls) -> "AuthenticationError":
        return cls("Invalid or expired session")

    @classmethod
    def inactive_user(cls) -> "AuthenticationError":
        return cls("User not found or inactive")

    @classmethod
    def invalid_credentials(cls) -> "AuthenticationError":
        return cls("Invalid credentials")

    @classmethod
    def deactivated(cls) -> "AuthenticationError":
        return cls(
            "Your account has been deactivated. "
            "Please contact an administrator for assistance."
        )


class AuthorizationError(KioskError):
    """Valid principal, insufficient role or tenant scope."""

    status_code = 403

    def __init__(self, message: str = "Access denied"):
        super().__init__(code="FORBIDDEN", message=message)

    @classmethod
    def admin_required(cls) -> "AuthorizationError":
        return cls("Admin access required")

    @classmethod
    def full_admin_required(cls) -> "AuthorizationError":
        return cls("Full admin access required")


class NotFoundError(KioskError):
    """Referenced entity does not exist."""

    status_code = 404

    def __init__(self, entity: str):
        super().__init__(code="NOT_FOUND", message=f"{entity} not found")


class ConflictError(KioskError):
    """Uniqueness or referential conflict."""

    status_code = 409

    def __init__(self, message: str):
        super().__init__(code="CONFLICT", message=message)


class SessionAlreadyUsedError(KioskError):
    """The QR session id has already been verified."""

    status_code = 400

    def __init__(
        self,
        used_at: Optional[datetime],
        first_name: Optional[str],
        last_name: Optional[str],
        used_time: str,
    ):
        self.used_at = used_at
        self.first_name = first_name
        self.last_name = last_name
        super().__init__(
            code="SESSION_ALREADY_USED",
            message=(
                f"Denne QR-koden er allerede brukt den {used_time}. "
                "Be om en ny QR-kode fra BankID-appen for å verifisere "
                "identitet på nytt."
            ),
            extra={
                "usedAt": used_at.isoformat() + "Z" if used_at else None,
                "firstName": first_name,
                "lastName": last_name,
            },
        )


class ProviderError(KioskError):
    """Upstream identity or verification provider failure."""

    def __init__(
        self,
        code: str,
        message: str,
        status: Optional[int] = None,
        body: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.status = status
        self.body = body
        super().__init__(code=code, message=message, status_code=status_code)

    @property
    def is_auth_failure(self) -> bool:
        """Whether this failure must never be masked by fallback data."""
        return self.status == 401


class ConfigurationError(ProviderError):
    """Provider credentials are not configured."""

    status_code = 401

    def __init__(self, message: str = "Stø API credentials not configured"):
        super().__init__(code="AUTH_FAILED", message=message)

    @property
    def is_auth_failure(self) -> bool:
        return True


class AuthProviderError(ProviderError):
    """Token endpoint refused or could not be reached."""

    status_code = 401

    def __init__(self, status: Optional[int] = None, body: Optional[str] = None):
        detail = f"HTTP {status}" if status is not None else "unreachable"
        super().__init__(
            code="AUTH_FAILED",
            message=f"Stø API authentication failed ({detail})",
            status=status,
            body=body,
        )

    @property
    def is_auth_failure(self) -> bool:
        return True


class VerificationProviderError(ProviderError):
    """Merchant session endpoint returned an error or bad data."""

    status_code = 400

    def __init__(
        self,
        status: Optional[int] = None,
        body: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        self.reason = reason
        super().__init__(
            code="VERIFICATION_FAILED",
            message="ID verification failed. The QR code may be invalid or expired.",
            status=status,
            body=body,
            status_code=401 if status == 401 else None,
        )
        if status == 401:
            self.code = "AUTH_FAILED"
            self.message = "Stø API authentication failed"


class InternalError(KioskError):
    """Unexpected failure."""

    status_code = 500

    def __init__(self, message: str = "Internal server error"):
        super().__init__(code="INTERNAL_ERROR", message=message)
