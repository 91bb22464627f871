#!/usr/bin/env python3
import argparse
import json
import sys
from typing import Optional

import psycopg
from psycopg.rows import dict_row

from backend.app.config import settings


def describe_column(cur, table: str, column: str) -> Optional[dict]:
    cur.execute(
        """
        SELECT column_name, data_type, character_maximum_length, is_nullable
        FROM information_schema.columns
        WHERE table_schema = current_schema()
          AND table_name = %s
          AND column_name = %s
        """,
        (table, column),
    )
    return cur.fetchone()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Print the declared type of one column.")
    parser.add_argument("--db", default=settings.db_url, help="Postgres connection string.")
    parser.add_argument("--table", default="users")
    parser.add_argument("--column", default="password_hash")
    args = parser.parse_args(argv)

    try:
        with psycopg.connect(args.db, row_factory=dict_row) as conn:
            with conn.cursor() as cur:
                row = describe_column(cur, args.table, args.column)
    except psycopg.Error as exc:
        print(f"check_schema: failed: {exc}", file=sys.stderr)
        return 1

    if not row:
        print(f"check_schema: column {args.table}.{args.column} not found", file=sys.stderr)
        return 3
    print(json.dumps(row, default=str))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
