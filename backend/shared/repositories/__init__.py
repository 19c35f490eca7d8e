"""asyncpg repositories for the catalog and per-user tracking tables."""

from .games import GamesRepository
from .user_games import UserGamesRepository

__all__ = [
    "GamesRepository",
    "UserGamesRepository",
]
