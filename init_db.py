"""
F04 - Query-log database setup for the DKIM/DMARC publication checker.

Only needed when ENABLE_QUERY_LOG_PERSISTENCE is set: creates the
``query_log`` table in DATABASE_URL and switches SQLite databases to WAL
journaling so lookups can be written while the log is being read.
Re-running it on an existing database changes nothing.

Usage:
    python init_db.py
    DATABASE_URL=sqlite:////var/lib/mailauth/mailauth.db python init_db.py
"""

from __future__ import annotations

import sys

from sqlalchemy import inspect, text

from mailauth import create_app, db


def init_database() -> list[str]:
    """Create missing tables and return the table names now present."""
    app = create_app()

    with app.app_context():
        db.create_all()

        if db.engine.dialect.name == "sqlite":
            with db.engine.connect() as conn:
                mode = conn.execute(text("PRAGMA journal_mode=WAL")).scalar()
            print(f"[init_db] SQLite journal_mode = {mode}")

        tables = sorted(inspect(db.engine).get_table_names())
        print(f"[init_db] {app.config['SQLALCHEMY_DATABASE_URI']}: {', '.join(tables)}")
        return tables


if __name__ == "__main__":
    try:
        init_database()
    except Exception as exc:  # pylint: disable=broad-except
        print(f"[init_db] failed: {exc}", file=sys.stderr)
        sys.exit(1)
