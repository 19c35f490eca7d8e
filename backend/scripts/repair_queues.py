"""Rewrite in-progress queues that hold negative or missing positions.

Usage:
    python repair_queues.py             # Repair every affected user
    python repair_queues.py <user_id>   # Repair one user
    python repair_queues.py --dry       # List affected users only
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

# Ensure backend/ is on sys.path so api.* and shared.* are importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

import asyncpg
from dotenv import load_dotenv

from api.services import UserGamesService
from shared.repositories.user_games import UserGamesRepository

load_dotenv(Path(__file__).resolve().parent.parent / "api" / ".env")

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")


async def main() -> None:
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL not set. Check api/.env or environment variables.")
        sys.exit(1)

    args = [a for a in sys.argv[1:] if not a.startswith("--")]
    pool = await asyncpg.create_pool(database_url, min_size=1, max_size=2, statement_cache_size=0)
    try:
        if "--dry" in sys.argv:
            users = await UserGamesRepository(pool).find_users_needing_repair()
            print(f"{len(users)} queue(s) need repair")
            for user_id in users:
                print(f"  -> {user_id}")
            return

        service = UserGamesService.from_pool(pool)
        if args:
            repaired = {user_id: await service.repair_queue(user_id) for user_id in args}
        else:
            repaired = await service.repair_all_queues()

        for user_id, rows in repaired.items():
            print(f"  {user_id}: {rows} row(s) rewritten")
        print(f"Repaired {sum(1 for rows in repaired.values() if rows)} queue(s).")
    finally:
        await pool.close()


if __name__ == "__main__":
    asyncio.run(main())
