# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Persistence layer for the kiosk."""

from visleg.db.session import get_db, get_db_session, init_database
from visleg.db.store import CredentialStore
