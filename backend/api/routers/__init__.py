"""API Routers package

Routers are organized by feature domain.
"""

from . import auth_router, games_router, user_games_router

__all__ = [
    "auth_router",
    "games_router",
    "user_games_router",
]
