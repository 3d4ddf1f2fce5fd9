# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Stø merchant API client.

Exchanges a VisLeg QR session id for the verified identity behind it.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from visleg import config
from visleg.exceptions import VerificationProviderError

log = logging.getLogger(__name__)


@dataclass
class ProviderIdentity:
    """Identity returned by the merchant session endpoint.

    Attributes:
        first_name: Given name(s) as printed on the credential.
        last_name: Family name.
        document_photo: Base64 photo, empty string when absent.
        age: Age in whole years, if disclosed.
    """

    first_name: str
    last_name: str
    document_photo: str = ""
    age: Optional[int] = None


class VerificationClient:
    """HTTP client for the merchant session endpoint."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: Optional[str] = None):
        self._http = http_client
        self.base_url = (base_url or config.STOE_API_URL).rstrip("/")

    @property
    def session_url(self) -> str:
        return f"{self.base_url}/api/merchant/session"

    async def verify(self, session_id: str, token: str) -> ProviderIdentity:
        """Look up a verified session.

        Args:
            session_id: VisLeg QR session id.
            token: Provider bearer token.

        Returns:
            ProviderIdentity for the session.

        Raises:
            VerificationProviderError: On non-2xx, transport failure or
                a response body without the expected fields.
        """
        try:
            response = await self._http.post(
                self.session_url,
                json={"sessionId": session_id},
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.TimeoutException as e:
            log.warning(f"Merchant API timeout for {session_id}: {e}")
            raise VerificationProviderError(reason="timeout") from e
        except httpx.HTTPError as e:
            log.warning(f"Merchant API unreachable for {session_id}: {type(e).__name__}: {e}")
            raise VerificationProviderError(reason="transport") from e

        if not response.is_success:
            log.warning(
                f"Merchant API returned {response.status_code} for {session_id}: "
                f"{response.text[:500]}"
            )
            raise VerificationProviderError(
                status=response.status_code,
                body=response.text,
                reason="http_error",
            )

        try:
            data = response.json()
            identity = ProviderIdentity(
                first_name=str(data["firstName"]),
                last_name=str(data["lastName"]),
                document_photo=data.get("documentPhoto") or "",
                age=int(data["age"]) if data.get("age") is not None else None,
            )
        except (ValueError, KeyError, TypeError) as e:
            log.warning(f"Malformed merchant API response for {session_id}: {e}")
            raise VerificationProviderError(
                status=response.status_code,
                body=response.text,
                reason="malformed",
            ) from e

        return identity
