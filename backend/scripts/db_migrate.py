"""Apply the SQL migrations in shared/migrations/versions.

Usage:
    python db_migrate.py          # Run all pending migrations
    python db_migrate.py --dry    # List pending migrations without applying
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Ensure backend/ is on sys.path so shared.* is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncpg
from dotenv import load_dotenv

from shared.migrations.runner import MigrationRunner

load_dotenv(Path(__file__).resolve().parent.parent / "api" / ".env")

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def main() -> None:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not set. Check api/.env or environment variables.")
        sys.exit(1)

    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2, statement_cache_size=0)
    try:
        runner = MigrationRunner(pool)

        if "--dry" in sys.argv:
            pending = await runner.pending()
            applied = await runner.get_applied()
            print(f"Applied: {len(applied)} | Pending: {len(pending)}")
            for path in pending:
                print(f"  -> {path.stem}")
            if not pending:
                print("Database is up to date.")
            return

        newly_applied = await runner.run_pending()
        if newly_applied:
            print(f"Applied {len(newly_applied)} migration(s).")
        else:
            print("No pending migrations.")
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
