#!/usr/bin/env python3
import argparse
import sys
from typing import Optional

import psycopg
from psycopg.rows import dict_row

from backend.app.config import settings
from backend.app.security import MIN_PASSWORD_LENGTH, hash_password


def set_password(cur, email: str, password: str, *, force_change: bool) -> bool:
    cur.execute(
        """
        UPDATE users
        SET password_hash = %s,
            must_change_password = %s,
            updated_at = now()
        WHERE lower(email) = %s
        RETURNING id
        """,
        (hash_password(password), force_change, email),
    )
    return cur.fetchone() is not None


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Set a user's password from the command line.")
    parser.add_argument("--db", default=settings.db_url, help="Postgres connection string.")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument(
        "--force-change",
        action="store_true",
        help="Make the user pick a new password at next login.",
    )
    args = parser.parse_args(argv)

    email = (args.email or "").strip().lower()
    if not email:
        print("reset_user_password: email is required", file=sys.stderr)
        return 2
    if len(args.password) < MIN_PASSWORD_LENGTH:
        print(f"reset_user_password: password must have at least {MIN_PASSWORD_LENGTH} characters", file=sys.stderr)
        return 2

    try:
        with psycopg.connect(args.db, row_factory=dict_row) as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    found = set_password(cur, email, args.password, force_change=args.force_change)
    except psycopg.Error as exc:
        print(f"reset_user_password: failed: {exc}", file=sys.stderr)
        return 1

    if not found:
        print(f"reset_user_password: user not found: {email}", file=sys.stderr)
        return 3

    # Tokens are stateless; sessions issued before the reset stay valid until they expire.
    print(f"reset_user_password: updated {email}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
