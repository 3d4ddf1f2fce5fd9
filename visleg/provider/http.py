# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Shared outbound HTTP client for the identity provider."""

import logging
from typing import Optional

import httpx

log = logging.getLogger(__name__)

# =============================================================================
# Singleton
# =============================================================================

_client: Optional[httpx.AsyncClient] = None


def get_http_client() -> httpx.AsyncClient:
    """Get or create the shared provider HTTP client.

    Also usable as a FastAPI dependency; tests override it with a client
    backed by ``httpx.MockTransport``.
    """
    global _client
    if _client is None:
        from visleg.config import PROVIDER_TIMEOUT_SECONDS

        _client = httpx.AsyncClient(timeout=httpx.Timeout(PROVIDER_TIMEOUT_SECONDS))
        log.info(f"Provider HTTP client created (timeout={PROVIDER_TIMEOUT_SECONDS}s)")
    return _client


async def close_http_client() -> None:
    """Close the shared client. Called on application shutdown."""
    global _client
    if _client is not None:
        await _client.aclose()
        _client = None


def reset_http_client() -> None:
    """Drop the shared client without closing it (for testing)."""
    global _client
    _client = None
