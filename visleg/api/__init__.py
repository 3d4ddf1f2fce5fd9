# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""HTTP API routers."""

from visleg.api import auth, health, organizations, reports, users, verify

ROUTERS = [
    health.router,
    verify.router,
    auth.router,
    organizations.router,
    users.router,
    reports.router,
]
