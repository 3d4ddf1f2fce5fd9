# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""OAuth2 client-credentials token cache for the identity provider.

Tokens are cached in the ``auth_tokens`` table keyed by scope. A cache
miss performs exactly one form-encoded grant against the token
endpoint; there is no retry. Concurrent misses may each fetch and
persist a token; every stored token stays usable until its own expiry.
"""

import logging
from datetime import timedelta
from typing import Optional

import httpx

from visleg import config
from visleg.db.models import utcnow
from visleg.db.store import CredentialStore
from visleg.exceptions import AuthProviderError, ConfigurationError

log = logging.getLogger(__name__)


class TokenCache:
    """Obtain and cache provider bearer tokens per scope."""

    def __init__(
        self,
        store: CredentialStore,
        http_client: httpx.AsyncClient,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
    ):
        self._store = store
        self._http = http_client
        self._client_id = client_id if client_id is not None else config.STOE_CLIENT_ID
        self._client_secret = (
            client_secret if client_secret is not None else config.STOE_CLIENT_SECRET
        )
        self._token_url = token_url or config.STOE_TOKEN_URL

    async def get_token(self, scope: Optional[str] = None) -> str:
        """Return a valid bearer token for ``scope``.

        Args:
            scope: Permission scope (default: configured VisLeg scope)

        Returns:
            Access token string

        Raises:
            ConfigurationError: If client id or secret is unset
            AuthProviderError: If the token endpoint fails or is unreachable
        """
        scope = scope or config.STOE_SCOPE

        cached = self._store.get_valid_token(scope)
        if cached is not None:
            log.debug(f"Token cache hit for scope {scope}")
            return cached.access_token

        if not self._client_id or not self._client_secret:
            log.error("Stø API credentials not configured")
            raise ConfigurationError()

        log.info(f"Token cache miss for scope {scope}, requesting new token")
        try:
            response = await self._http.post(
                self._token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": self._client_id,
                    "client_secret": self._client_secret,
                    "scope": scope,
                },
            )
        except httpx.HTTPError as e:
            log.error(f"Token endpoint unreachable: {type(e).__name__}: {e}")
            raise AuthProviderError(status=None, body=str(e)) from e

        if not response.is_success:
            log.error(f"Token endpoint returned {response.status_code}: {response.text[:500]}")
            raise AuthProviderError(status=response.status_code, body=response.text)

        try:
            payload = response.json()
            access_token = payload["access_token"]
            expires_in = int(payload.get("expires_in", 0))
        except (ValueError, KeyError, TypeError) as e:
            log.error(f"Malformed token response: {e}")
            raise AuthProviderError(status=response.status_code, body=response.text) from e

        expires_at = utcnow() + timedelta(seconds=expires_in)
        self._store.save_token(
            access_token=access_token,
            expires_at=expires_at,
            scope=scope,
        )
        log.info(f"Cached new token for scope {scope} (expires in {expires_in}s)")
        return access_token


def purge_expired_tokens(store: CredentialStore) -> int:
    """Delete every token whose expiry has passed."""
    removed = store.delete_expired_tokens()
    if removed:
        log.info(f"Purged {removed} expired provider tokens")
    return removed
