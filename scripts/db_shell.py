"""
Quick helper to run a query against the marketplace database (DATABASE_URL required).

Usage:
  DATABASE_URL=... python scripts/db_shell.py                                # list tables with row counts
  DATABASE_URL=... python scripts/db_shell.py "SELECT * FROM job_posts"      # run a custom query
"""
from __future__ import annotations

import sys

from dotenv import load_dotenv

from core.db.base import get_conn
from core.db.schema import ALL_TABLES


def list_tables(cur) -> None:
    for table in ALL_TABLES:
        cur.execute(f"SELECT COUNT(*) AS count FROM {table}")
        print(f"{table}: {cur.fetchone()['count']}")


def main() -> None:
    load_dotenv(override=True)
    query = " ".join(sys.argv[1:]).strip()

    try:
        conn = get_conn()
    except RuntimeError as exc:
        raise SystemExit(str(exc)) from exc

    try:
        cur = conn.cursor()
        if not query:
            list_tables(cur)
            return
        cur.execute(query)
        if cur.description is not None:
            for row in cur.fetchall():
                print(dict(row))
        else:
            conn.commit()
            print(f"OK ({cur.rowcount} row(s) affected)")
    except Exception as exc:
        raise SystemExit(f"Error running query: {exc}") from exc
    finally:
        conn.close()


if __name__ == "__main__":
    main()
