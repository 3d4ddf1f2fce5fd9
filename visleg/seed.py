# Copyright (c) Rich Connexions Ltd. All rights reserved.
# Licensed under the MIT License. See LICENSE for details.
"""Bootstrap data: a default organization and one account per role.

Idempotent; existing rows are left untouched.

Usage:
    python -m visleg.seed
"""

import argparse
import logging
import sys

from visleg.auth.passwords import hash_password
from visleg.auth.roles import Role
from visleg.db.session import get_db_session, init_database
from visleg.db.store import CredentialStore

log = logging.getLogger(__name__)

DEFAULT_ORGANIZATION = {
    "name": "Test Organization",
    "contact_email": "admin@test.no",
    "mfxid": "TEST001",
}

DEFAULT_USERS = [
    ("admin", "admin123", Role.ADMIN),
    ("orgadmin", "orgadmin123", Role.ORG_ADMIN),
    ("user", "user123", Role.USER),
]


def seed_database(store: CredentialStore) -> dict[str, int]:
    """Create the default organization and users if missing.

    Returns:
        Counts of created organizations and users
    """
    created = {"organizations": 0, "users": 0}

    org = next(
        (o for o in store.list_organizations() if o.name == DEFAULT_ORGANIZATION["name"]),
        None,
    )
    if org is None:
        org = store.create_organization(**DEFAULT_ORGANIZATION)
        created["organizations"] += 1

    for username, password, role in DEFAULT_USERS:
        if store.get_user_by_username(username) is not None:
            continue
        store.create_user(
            username=username,
            password_hash=hash_password(password),
            organization_id=org.id,
            role=role.value,
        )
        created["users"] += 1

    log.info(
        f"Seed complete: {created['organizations']} organizations, "
        f"{created['users']} users created"
    )
    return created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the kiosk database with default accounts")
    parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    init_database()
    with get_db_session() as db:
        created = seed_database(CredentialStore(db))
    print(f"Created {created['organizations']} organizations and {created['users']} users")
    return 0


if __name__ == "__main__":
    sys.exit(main())
