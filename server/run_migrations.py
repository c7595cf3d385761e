"""Schema bootstrap for the calendar database.

Usage:
  DATABASE_URL=postgresql://... python server/run_migrations.py

The files under ``migrations/`` define the calendar schema:
``001_calendar_schema.sql`` creates events, materials, day_schedules and
day_types with their school/date indexes, and ``002_date_configs.sql``
adds the per-date color, A/B day type and access-day table. Every file uses
``IF NOT EXISTS`` so ``POST /api/init`` can apply the same list through the
application pool on each call; this command additionally records applied
filenames in app_migrations and skips them on later runs.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import List

import psycopg

from app_logger import get_logger

logger = get_logger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"
TRACK_TABLE_SQL = """
CREATE TABLE IF NOT EXISTS app_migrations (
    filename TEXT PRIMARY KEY,
    applied_at TIMESTAMPTZ NOT NULL DEFAULT now()
);
"""


def iter_migration_files() -> List[Path]:
    return sorted(MIGRATIONS_DIR.glob("*.sql"))


def main() -> int:
    url = os.getenv("DATABASE_URL")
    if not url:
        logger.error("DATABASE_URL environment variable is missing")
        return 1

    files = iter_migration_files()
    if not files:
        logger.info("No migration files found in %s", MIGRATIONS_DIR)
        return 0

    logger.info("Connecting to database using DATABASE_URL...")
    with psycopg.connect(url, autocommit=True) as conn:
        with conn.cursor() as cur:
            cur.execute(TRACK_TABLE_SQL)

        for path in files:
            name = path.name
            with conn.cursor() as cur:
                cur.execute(
                    "SELECT 1 FROM app_migrations WHERE filename = %s",
                    (name,),
                )
                if cur.fetchone():
                    logger.info("- Skipping %s (already applied)", name)
                    continue

            sql_text = path.read_text(encoding="utf-8")
            logger.info("- Applying %s...", name)
            try:
                with conn.transaction():
                    with conn.cursor() as cur:
                        cur.execute(sql_text)
                    with conn.cursor() as cur:
                        cur.execute(
                            "INSERT INTO app_migrations (filename) VALUES (%s) ON CONFLICT DO NOTHING",
                            (name,),
                        )
            except psycopg.Error as exc:
                logger.error("! Migration %s failed: %s", name, exc)
                return 1

    logger.info("All migrations applied successfully.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
