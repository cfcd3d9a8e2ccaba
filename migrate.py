"""
migrate.py — Brings an existing database up to the current links schema.

SQLAlchemy's create_all() only creates NEW tables, it never alters existing
ones. Databases created before expires_at / password_protected existed need
the columns added and backfilled here.

Usage:
  python migrate.py

Safe to run multiple times — every statement is idempotent or skipped.
"""

import logging

from sqlalchemy import text

from database import engine

logger = logging.getLogger(__name__)

MIGRATIONS = [
    """
    CREATE TABLE IF NOT EXISTS links (
        id VARCHAR(32) PRIMARY KEY,
        ciphertext TEXT NOT NULL,
        views_remaining INTEGER NOT NULL DEFAULT 1,
        views_total INTEGER NOT NULL DEFAULT 1,
        ttl_seconds INTEGER NOT NULL DEFAULT 3600,
        password_protected BOOLEAN NOT NULL DEFAULT FALSE,
        created_at TIMESTAMP NOT NULL,
        expires_at TIMESTAMP NOT NULL,
        CONSTRAINT ck_links_views_remaining CHECK (views_remaining >= 0),
        CONSTRAINT ck_links_views_bound CHECK (views_remaining <= views_total)
    )
    """,

    # ── columns added after the first release ──────────────────────────────
    "ALTER TABLE links ADD COLUMN password_protected BOOLEAN NOT NULL DEFAULT FALSE",
    "ALTER TABLE links ADD COLUMN expires_at TIMESTAMP",

    "CREATE INDEX IF NOT EXISTS ix_links_created_at ON links (created_at)",
    "CREATE INDEX IF NOT EXISTS ix_links_expires_at ON links (expires_at)",
]

# Backfill expires_at for rows created before the column existed.
BACKFILL = {
    "sqlite": "UPDATE links SET expires_at = datetime(created_at, '+' || ttl_seconds || ' seconds') "
              "WHERE expires_at IS NULL",
    "postgresql": "UPDATE links SET expires_at = created_at + ttl_seconds * INTERVAL '1 second' "
                  "WHERE expires_at IS NULL",
}

# Once backfilled, match the model. SQLite cannot alter a column constraint;
# there the column stays nullable and only create/consume write it.
ENFORCE_NOT_NULL = {
    "postgresql": "ALTER TABLE links ALTER COLUMN expires_at SET NOT NULL",
}


def migration_statements(dialect_name: str) -> list:
    statements = list(MIGRATIONS)
    if dialect_name in BACKFILL:
        statements.append(BACKFILL[dialect_name])
    if dialect_name in ENFORCE_NOT_NULL:
        statements.append(ENFORCE_NOT_NULL[dialect_name])
    return statements


def run_migrations(bind=engine) -> dict:
    applied, skipped = 0, 0
    statements = migration_statements(bind.dialect.name)

    with bind.connect() as conn:
        for i, sql in enumerate(statements, 1):
            clean = " ".join(sql.split())[:80]
            try:
                conn.execute(text(sql))
                conn.commit()
                applied += 1
                logger.info(f"[{i:02d}] {clean}...")
            except Exception as e:
                conn.rollback()
                skipped += 1
                # Non-fatal: column may already exist
                logger.info(f"[{i:02d}] Skipped (already exists or error): {e}")

    return {"applied": applied, "skipped": skipped}


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(message)s")
    result = run_migrations()
    print(f"Migration complete: {result['applied']} applied, {result['skipped']} skipped")
