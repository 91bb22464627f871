#!/usr/bin/env python3
"""
Create the first administrator account.

Runs only when BOOTSTRAP_ADMIN is truthy, and does nothing once any administrator
exists. Without BOOTSTRAP_ADMIN_PASSWORD a random password is generated, printed
once, and the user must change it at first login.
"""
import argparse
import os
import secrets
import sys
from typing import Optional

import psycopg
from psycopg.rows import dict_row

from backend.app.config import settings
from backend.app.deps import ROLE_ADMIN
from backend.app.security import hash_password


def _truthy(v: str) -> bool:
    return (v or "").strip().lower() in {"1", "true", "yes", "y", "on"}


def create_first_admin(cur, email: str, password: str, *, must_change: bool) -> Optional[str]:
    """Insert the administrator unless one exists; returns the new id or None."""
    cur.execute("SELECT 1 FROM users WHERE role = %s LIMIT 1", (ROLE_ADMIN,))
    if cur.fetchone():
        return None
    cur.execute(
        """
        INSERT INTO users (email, password_hash, role, must_change_password)
        VALUES (%s, %s, %s, %s)
        RETURNING id
        """,
        (email, hash_password(password), ROLE_ADMIN, must_change),
    )
    return str(cur.fetchone()["id"])


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Create the first administrator (maintenance).")
    parser.add_argument("--db", default=settings.db_url, help="Postgres connection string.")
    parser.add_argument("--email", default=os.getenv("BOOTSTRAP_ADMIN_EMAIL", "admin@minimarket.local"))
    args = parser.parse_args(argv)

    if not _truthy(os.getenv("BOOTSTRAP_ADMIN", "")):
        return 0

    email = (args.email or "").strip().lower()
    if not email:
        print("bootstrap_admin: admin email is empty", file=sys.stderr)
        return 2

    password = os.getenv("BOOTSTRAP_ADMIN_PASSWORD")
    generated = not password
    if generated:
        password = secrets.token_urlsafe(16)

    try:
        with psycopg.connect(args.db, row_factory=dict_row) as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    user_id = create_first_admin(cur, email, password, must_change=generated)
    except psycopg.Error as exc:
        print(f"bootstrap_admin: failed: {exc}", file=sys.stderr)
        return 1

    if user_id is None:
        print("bootstrap_admin: an administrator already exists, nothing to do")
        return 0

    print(f"bootstrap_admin: created {email} ({user_id})")
    if generated:
        print(f"password: {password}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
