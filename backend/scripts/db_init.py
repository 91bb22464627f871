#!/usr/bin/env python3
"""
Apply SQL schema files to the configured database, in order.

Missing files are skipped with a warning; any database error aborts with exit code 1.
"""
import argparse
import sys
from pathlib import Path
from typing import Optional

import psycopg

from backend.app.config import settings

DEFAULT_SCHEMA = Path(__file__).resolve().parents[1] / "db" / "schema.sql"


def read_sql_files(paths: list[Path]) -> list[tuple[Path, str]]:
    out = []
    for p in paths:
        if not p.is_file():
            print(f"db_init: {p} not found, skipping", file=sys.stderr)
            continue
        out.append((p, p.read_text(encoding="utf-8")))
    return out


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Apply SQL schema files (maintenance).")
    parser.add_argument(
        "--db",
        default=settings.db_url if settings.db_configured else "",
        help="Postgres connection string (defaults to $DATABASE_URL or the POSTGRES_* variables).",
    )
    parser.add_argument("--file", action="append", dest="files", help="SQL file to apply (repeatable).")
    args = parser.parse_args(argv)

    if not args.db:
        print("db_init: missing database configuration", file=sys.stderr)
        return 2

    files = [Path(f) for f in (args.files or [str(DEFAULT_SCHEMA)])]
    scripts = read_sql_files(files)

    try:
        with psycopg.connect(args.db) as conn:
            with conn.transaction():
                with conn.cursor() as cur:
                    for path, sql in scripts:
                        print(f"db_init: applying {path}")
                        cur.execute(sql)
    except psycopg.Error as exc:
        print(f"db_init: failed: {exc}", file=sys.stderr)
        return 1

    print(f"db_init: applied {len(scripts)} file(s)")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
