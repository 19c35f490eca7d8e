"""Catalog search service"""

import logging

import asyncpg

from shared.errors import StorageError
from shared.repositories.games import GamesRepository
from shared.schemas.games import GamesListDTO, GamesSearchQuery, GameSummaryDTO

from . import errors
from .errors import CatalogServiceError

logger = logging.getLogger(__name__)


class CatalogService:
    """Read-only access to the games catalog"""

    def __init__(self, games: GamesRepository):
        self.games = games

    @classmethod
    def from_pool(cls, pool: asyncpg.Pool) -> "CatalogService":
        return cls(GamesRepository(pool))

    async def search_games(self, query: GamesSearchQuery) -> GamesListDTO:
        try:
            games, total = await self.games.search(query)
        except StorageError as e:
            raise CatalogServiceError(
                errors.CATALOG_QUERY_FAILED, "Failed to query games catalog."
            ) from e

        return GamesListDTO(
            page=query.page,
            page_size=query.page_size,
            total=total,
            results=[GameSummaryDTO.from_game(game) for game in games],
        )
