"""Repository for the user_games table.

Every statement is scoped by ``user_id``. The ``(user_id, in_progress_position)``
unique index is checked per statement (not deferred), so callers that move
several positions at once must avoid transient collisions themselves.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime

import asyncpg

from shared.errors import translate_errors
from shared.models.user_game import UserGameRecord
from shared.schemas.user_games import UserGamesQuery

logger = logging.getLogger(__name__)

PRIMARY_KEY_CONSTRAINT = "user_games_pkey"
POSITION_CONSTRAINT = "user_games_user_position_key"

_SELECT_COLUMNS = """
    ug.user_id, ug.game_id, ug.status::text AS status, g.title, g.slug,
    ug.in_progress_position, COALESCE(ug.achievements_unlocked, 0) AS achievements_unlocked,
    g.achievements_total, g.popularity_score,
    ug.completed_at, ug.imported_at, ug.updated_at, ug.removed_at
"""

_ORDER_COLUMNS = {
    "in_progress_position": "ug.in_progress_position",
    "updated_at": "ug.updated_at",
    "popularity_score": "g.popularity_score",
}


def _affected(result: str) -> int:
    # asyncpg status string, e.g. "UPDATE 3"
    return int(result.split()[-1])


class UserGamesRepository:
    """Pure SQL operations for user_games.

    Bound either to the pool (each call borrows a connection) or, inside
    :meth:`transaction`, to a single connection.
    """

    def __init__(self, pool: asyncpg.Pool, conn: asyncpg.Connection | None = None) -> None:
        self.pool = pool
        self._conn = conn

    @asynccontextmanager
    async def _connection(self) -> AsyncIterator[asyncpg.Connection]:
        if self._conn is not None:
            yield self._conn
            return
        async with self.pool.acquire() as conn:
            yield conn

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[UserGamesRepository]:
        """Yield a repository whose statements share one transaction."""
        with translate_errors("transaction"):
            async with self._connection() as conn:
                async with conn.transaction():
                    yield UserGamesRepository(self.pool, conn=conn)

    # ==================== Reads ====================

    async def list_entries(
        self, user_id: str, query: UserGamesQuery
    ) -> tuple[list[UserGameRecord], int]:
        """Return one page of entries plus the exact total for the filters."""
        conditions = ["ug.user_id = $1"]
        args: list = [user_id]
        if query.statuses:
            args.append(list(query.statuses))
            conditions.append(f"ug.status::text = ANY(${len(args)}::text[])")
        if query.search:
            args.append(query.search)
            conditions.append(f"g.search_tsv @@ websearch_to_tsquery('simple', ${len(args)})")
        where = " AND ".join(conditions)

        column = _ORDER_COLUMNS[query.order_by]
        direction = "ASC" if query.order_direction == "asc" else "DESC"

        with translate_errors("list_entries"):
            async with self._connection() as conn:
                total = await conn.fetchval(
                    "SELECT COUNT(*) FROM user_games ug "
                    f"JOIN games g ON g.steam_app_id = ug.game_id WHERE {where}",
                    *args,
                )
                rows = await conn.fetch(
                    f"SELECT {_SELECT_COLUMNS} FROM user_games ug "
                    f"JOIN games g ON g.steam_app_id = ug.game_id WHERE {where} "
                    f"ORDER BY {column} {direction} NULLS LAST, ug.game_id ASC "
                    f"LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}",
                    *args,
                    query.page_size,
                    query.offset,
                )
        return [UserGameRecord(**dict(row)) for row in rows], int(total or 0)

    async def get_entry(
        self, user_id: str, game_id: int, *, for_update: bool = False
    ) -> UserGameRecord | None:
        lock = " FOR UPDATE OF ug" if for_update else ""
        with translate_errors("get_entry"):
            async with self._connection() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_SELECT_COLUMNS} FROM user_games ug "
                    "JOIN games g ON g.steam_app_id = ug.game_id "
                    f"WHERE ug.user_id = $1 AND ug.game_id = $2{lock}",
                    user_id,
                    game_id,
                )
        if not row:
            return None
        return UserGameRecord(**dict(row))

    async def count_in_progress(self, user_id: str) -> int:
        with translate_errors("count_in_progress"):
            async with self._connection() as conn:
                count = await conn.fetchval(
                    "SELECT COUNT(*) FROM user_games WHERE user_id = $1 AND status = 'in_progress'",
                    user_id,
                )
        return int(count or 0)

    async def max_in_progress_position(self, user_id: str) -> int:
        """Largest absolute position in the queue, 0 when empty."""
        with translate_errors("max_in_progress_position"):
            async with self._connection() as conn:
                value = await conn.fetchval(
                    "SELECT COALESCE(MAX(ABS(in_progress_position)), 0) FROM user_games "
                    "WHERE user_id = $1 AND status = 'in_progress'",
                    user_id,
                )
        return int(value or 0)

    async def get_in_progress_positions(
        self, user_id: str, *, for_update: bool = False
    ) -> dict[int, int | None]:
        """Map game_id -> stored position for every in_progress entry."""
        lock = " FOR UPDATE" if for_update else ""
        with translate_errors("get_in_progress_positions"):
            async with self._connection() as conn:
                rows = await conn.fetch(
                    "SELECT game_id, in_progress_position FROM user_games "
                    f"WHERE user_id = $1 AND status = 'in_progress' ORDER BY game_id{lock}",
                    user_id,
                )
        return {row["game_id"]: row["in_progress_position"] for row in rows}

    async def find_users_needing_repair(self) -> list[str]:
        """Users whose queue holds a non-positive position."""
        with translate_errors("find_users_needing_repair"):
            async with self._connection() as conn:
                rows = await conn.fetch(
                    "SELECT DISTINCT user_id FROM user_games "
                    "WHERE status = 'in_progress' AND in_progress_position < 1 "
                    "ORDER BY user_id"
                )
        return [str(row["user_id"]) for row in rows]

    # ==================== Writes ====================

    async def insert_entry(
        self,
        user_id: str,
        game_id: int,
        status: str,
        in_progress_position: int | None,
    ) -> UserGameRecord:
        """Insert a new entry. Raises UniqueViolation on duplicate key or position."""
        with translate_errors("insert_entry"):
            async with self._connection() as conn:
                row = await conn.fetchrow(
                    f"""
                    WITH ug AS (
                        INSERT INTO user_games (user_id, game_id, status, in_progress_position)
                        VALUES ($1, $2, $3::game_play_status, $4)
                        RETURNING *
                    )
                    SELECT {_SELECT_COLUMNS} FROM ug
                    JOIN games g ON g.steam_app_id = ug.game_id
                    """,
                    user_id,
                    game_id,
                    status,
                    in_progress_position,
                )
        return UserGameRecord(**dict(row))

    async def update_entry(
        self,
        user_id: str,
        game_id: int,
        *,
        status: str,
        in_progress_position: int | None,
        achievements_unlocked: int,
        completed_at: datetime | None,
        removed_at: datetime | None,
    ) -> UserGameRecord | None:
        """Overwrite the mutable columns of one entry. Returns None if absent."""
        with translate_errors("update_entry"):
            async with self._connection() as conn:
                row = await conn.fetchrow(
                    f"""
                    WITH ug AS (
                        UPDATE user_games SET
                            status = $3::game_play_status,
                            in_progress_position = $4,
                            achievements_unlocked = $5,
                            completed_at = $6,
                            removed_at = $7,
                            updated_at = NOW()
                        WHERE user_id = $1 AND game_id = $2
                        RETURNING *
                    )
                    SELECT {_SELECT_COLUMNS} FROM ug
                    JOIN games g ON g.steam_app_id = ug.game_id
                    """,
                    user_id,
                    game_id,
                    status,
                    in_progress_position,
                    achievements_unlocked,
                    completed_at,
                    removed_at,
                )
        if not row:
            return None
        return UserGameRecord(**dict(row))

    async def set_in_progress_position(self, user_id: str, game_id: int, position: int) -> int:
        """Move one in_progress entry. Returns the number of rows updated (0 or 1)."""
        with translate_errors("set_in_progress_position"):
            async with self._connection() as conn:
                result = await conn.execute(
                    "UPDATE user_games SET in_progress_position = $3, updated_at = NOW() "
                    "WHERE user_id = $1 AND game_id = $2 AND status = 'in_progress'",
                    user_id,
                    game_id,
                    position,
                )
        return _affected(result)
