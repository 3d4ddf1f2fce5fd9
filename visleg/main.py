# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.

"""FastAPI application for the VisLeg kiosk backend.

**HTTP Endpoints**

* ``POST /api/verify-demo`` and ``POST /api/verify``: exchange a scanned
  BankID VisLeg QR session id for the verified identity behind it.
* ``/api/admin/...``: login/logout, organization and user management,
  monthly reports, dashboard and audit log export, gated by role.
* ``GET /api/health``: liveness probe with audit and degraded-mode
  counters.

**Background Services**

* Expired provider tokens are purged every minute.
* Expired admin sessions are purged every hour.

**Logging**

Structured JSON logging is configured at startup using the
``VISLEG_LOG_LEVEL`` setting. Every request is logged with its method,
path, status and duration.

Architecture
------------
The async lifespan context manager handles ordered startup and shutdown:

1. Configure logging and create database tables.
2. Optionally seed default accounts.
3. Start background sweeps.
4. Yield (application serves requests).
5. Stop background sweeps.
6. Close the provider HTTP client.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from contextlib import asynccontextmanager
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from visleg.api import ROUTERS
from visleg.api.errors import register_exception_handlers
from visleg.background import start_background_tasks, stop_background_tasks
from visleg.config import (
    ALLOW_FALLBACK_ON_PROVIDER_ERROR,
    CORS_ORIGINS,
    HTTP_HOST,
    HTTP_PORT,
    LOG_LEVEL,
    SEED_ON_STARTUP,
)
from visleg.db.session import get_db_session, init_database
from visleg.db.store import CredentialStore
from visleg.provider.http import close_http_client


# ======================================================================
# Structured JSON logging
# ======================================================================


class _JSONFormatter(logging.Formatter):
    """Structured JSON log formatter.

    Produces one JSON object per log line with fields ``timestamp``,
    ``level``, ``logger``, ``message``, ``module`` and ``funcName``, plus
    ``exception`` with the formatted traceback when one is attached.
    """

    def format(self, record: logging.LogRecord) -> str:
        log_entry: Dict[str, Any] = {
            "timestamp": self.formatTime(record, datefmt="%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "funcName": record.funcName,
        }
        if record.exc_info and record.exc_info[1] is not None:
            log_entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_entry, default=str)


def _configure_logging() -> None:
    """Configure structured JSON logging on the root logger.

    Existing handlers are removed first to prevent duplicate output when
    running under uvicorn.
    """
    root = logging.getLogger()

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_JSONFormatter())

    root.addHandler(handler)
    root.setLevel(getattr(logging, LOG_LEVEL.upper(), logging.INFO))

    # Suppress noisy third-party loggers.
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ======================================================================
# Application lifespan
# ======================================================================


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger = logging.getLogger("visleg.main")

    # --- Startup ---
    _configure_logging()
    logger.info(
        "VisLeg kiosk starting: HTTP=%s:%d, log_level=%s, fallback_on_provider_error=%s",
        HTTP_HOST, HTTP_PORT, LOG_LEVEL, ALLOW_FALLBACK_ON_PROVIDER_ERROR,
    )
    if ALLOW_FALLBACK_ON_PROVIDER_ERROR:
        logger.warning(
            "Provider fallback is enabled: rejected live verifications return "
            "placeholder identities"
        )

    init_database()

    if SEED_ON_STARTUP:
        from visleg.seed import seed_database

        with get_db_session() as db:
            seed_database(CredentialStore(db))

    await start_background_tasks()

    yield

    # --- Shutdown ---
    logger.info("VisLeg kiosk shutting down")
    await stop_background_tasks()
    await close_http_client()
    logger.info("VisLeg kiosk shutdown complete")


# ======================================================================
# FastAPI application
# ======================================================================

app = FastAPI(
    title="VisLeg Kiosk",
    description=(
        "Identity-verification kiosk backend. Exchanges BankID VisLeg QR "
        "sessions for verified identities and reports per-organization usage."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

for _router in ROUTERS:
    app.include_router(_router)

logger = logging.getLogger("visleg.main")


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log method, path, status and duration for API requests."""
    start = time.perf_counter()
    response = await call_next(request)
    if request.url.path.startswith("/api"):
        duration_ms = (time.perf_counter() - start) * 1000
        logger.info(
            "%s %s %d in %.0fms",
            request.method, request.url.path, response.status_code, duration_ms,
        )
    return response


# ======================================================================
# Entrypoint
# ======================================================================


def main() -> None:
    """Run the application under uvicorn.

    For production deployments, use uvicorn directly::

        uvicorn visleg.main:app --host 0.0.0.0 --port 5000
    """
    import uvicorn

    _configure_logging()
    logger.info("Starting VisLeg kiosk: HTTP=%s:%d", HTTP_HOST, HTTP_PORT)

    uvicorn.run(
        "visleg.main:app",
        host=HTTP_HOST,
        port=HTTP_PORT,
        log_level=LOG_LEVEL.lower(),
        reload=False,
    )


if __name__ == "__main__":
    main()
