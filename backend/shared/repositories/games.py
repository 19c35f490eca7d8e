"""Repository for the games catalog table."""

from __future__ import annotations

import logging

import asyncpg

from shared.cache import AsyncTTLCache, cached
from shared.errors import translate_errors
from shared.models.game import Game
from shared.schemas.games import GamesSearchQuery

logger = logging.getLogger(__name__)

_GAME_COLUMNS = (
    "steam_app_id, title, slug, genres, release_date, popularity_score, "
    "artwork_url, achievements_total, created_at, updated_at"
)

_SORT_CLAUSES = {
    "popularity": "popularity_score DESC NULLS LAST",
    "release_date_desc": "release_date DESC NULLS LAST",
    "title_asc": "title ASC",
}

# Catalog rows are refreshed by an import job, not by users
_game_cache = AsyncTTLCache(maxsize=512, ttl=600)


class GamesRepository:
    """Read-only SQL operations for games."""

    def __init__(self, pool: asyncpg.Pool) -> None:
        self.pool = pool

    # Misses are not cached so newly imported games resolve at once
    @cached(
        cache=_game_cache,
        key_func=lambda self, game_id: f"game:{game_id}",
        cache_none=False,
    )
    async def get_game(self, game_id: int) -> Game | None:
        with translate_errors("get_game"):
            async with self.pool.acquire() as conn:
                row = await conn.fetchrow(
                    f"SELECT {_GAME_COLUMNS} FROM games WHERE steam_app_id = $1",
                    game_id,
                )
        if not row:
            return None
        return Game(**dict(row))

    async def search(self, query: GamesSearchQuery) -> tuple[list[Game], int]:
        """Filter, sort and paginate the catalog. Returns (page, exact total)."""
        conditions: list[str] = []
        args: list = []
        if query.search:
            args.append(query.search)
            conditions.append(f"search_tsv @@ websearch_to_tsquery('simple', ${len(args)})")
        if query.genres:
            args.append(list(query.genres))
            conditions.append(f"genres && ${len(args)}::text[]")
        if query.released_after:
            args.append(query.released_after)
            conditions.append(f"release_date >= ${len(args)}")
        if query.released_before:
            args.append(query.released_before)
            conditions.append(f"release_date <= ${len(args)}")
        where = f"WHERE {' AND '.join(conditions)}" if conditions else ""
        order = _SORT_CLAUSES[query.sort]

        with translate_errors("search_games"):
            async with self.pool.acquire() as conn:
                total = await conn.fetchval(f"SELECT COUNT(*) FROM games {where}", *args)
                rows = await conn.fetch(
                    f"SELECT {_GAME_COLUMNS} FROM games {where} "
                    f"ORDER BY {order}, steam_app_id ASC "
                    f"LIMIT ${len(args) + 1} OFFSET ${len(args) + 2}",
                    *args,
                    query.page_size,
                    query.offset,
                )
        return [Game(**dict(row)) for row in rows], int(total or 0)
