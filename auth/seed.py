"""
auth/seed.py -- Demo account bootstrap for local development.

Enabled with SEED_DEMO_USERS=true. Runs only against an empty users table so
a restart never resets passwords on real accounts.
"""

from __future__ import annotations

import logging

from auth.models import Role, User
from auth.store import UserStore
from auth.tokens import hash_password

logger = logging.getLogger("taskmanager.auth")

# (username, email, password, role)
DEMO_USERS: list[tuple[str, str, str, Role]] = [
    ("user", "user@taskmanager.local", "password123", Role.USER),
    ("admin", "admin@taskmanager.local", "admin123", Role.ADMIN),
]


def seed_demo_users(store: UserStore) -> int:
    """Create the demo accounts if no user exists yet. Returns the number created."""
    if store.has_users():
        return 0
    for username, email, password, role in DEMO_USERS:
        store.create_user(
            User(
                username=username,
                email=email,
                hashed_password=hash_password(password),
                roles=[role.value],
            )
        )
        logger.info("Demo user created: %s (role %s)", username, role.value)
    return len(DEMO_USERS)
