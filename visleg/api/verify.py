# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""QR verification endpoints."""

import logging
from typing import Optional

import httpx
from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from visleg.auth.dependencies import extract_token, resolve_principal
from visleg.db.session import get_db
from visleg.db.store import CredentialStore
from visleg.exceptions import InternalError, KioskError
from visleg.provider.http import get_http_client
from visleg.verification.engine import SessionProtocolEngine, verify_demo

log = logging.getLogger(__name__)
router = APIRouter(prefix="/api", tags=["verification"])


class VerifyRequest(BaseModel):
    """Scanned QR payload, plus an optional admin session token fallback."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: Optional[str] = Field(None, alias="sessionId")
    auth_session_id: Optional[str] = Field(None, alias="authSessionId")


@router.post("/verify-demo")
async def verify_demo_session(body: VerifyRequest) -> dict:
    """Demo verification. No authentication, nothing persisted."""
    return verify_demo(body.session_id).to_dict()


@router.post("/verify")
async def verify_session(
    body: VerifyRequest,
    request: Request,
    db: Session = Depends(get_db),
    http_client: httpx.AsyncClient = Depends(get_http_client),
) -> dict:
    """Verify a scanned QR session for the authenticated kiosk user.

    The session token may come from the usual headers or, for kiosk
    clients that cannot set headers, the ``authSessionId`` body field.
    """
    store = CredentialStore(db)
    principal = await resolve_principal(extract_token(request) or body.auth_session_id, store)

    engine = SessionProtocolEngine(store, http_client)
    try:
        result = await engine.verify(body.session_id, principal)
    except KioskError:
        raise
    except Exception:
        log.exception(f"Unhandled exception verifying session {body.session_id}")
        raise InternalError("Internal server error during verification")

    return result.to_dict()
