"""Services layer - Business logic

Services are constructed with their repositories and reached through
FastAPI dependency injection.
"""

from .auth_service import AuthService
from .catalog_service import CatalogService
from .errors import CatalogServiceError, ServiceError, UserGamesServiceError
from .user_games_service import UserGamesService

__all__ = [
    "AuthService",
    "CatalogService",
    "CatalogServiceError",
    "ServiceError",
    "UserGamesService",
    "UserGamesServiceError",
]
