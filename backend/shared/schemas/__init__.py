"""Pydantic contracts shared by the API and the client view-models."""

from .games import GamesListDTO, GamesSearchQuery, GameSummaryDTO, parse_games_search_query
from .user_games import (
    CompleteUserGameCommand,
    CreateUserGameCommand,
    ReorderInProgressCommand,
    ReorderInProgressResultDTO,
    ReorderItem,
    UpdateUserGameCommand,
    UserGameDTO,
    UserGamesListDTO,
    UserGamesQuery,
    parse_user_games_query,
)

__all__ = [
    "CompleteUserGameCommand",
    "CreateUserGameCommand",
    "GameSummaryDTO",
    "GamesListDTO",
    "GamesSearchQuery",
    "ReorderInProgressCommand",
    "ReorderInProgressResultDTO",
    "ReorderItem",
    "UpdateUserGameCommand",
    "UserGameDTO",
    "UserGamesListDTO",
    "UserGamesQuery",
    "parse_games_search_query",
    "parse_user_games_query",
]
