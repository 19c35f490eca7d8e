"""Dependency injection utilities for FastAPI"""

import logging
from dataclasses import dataclass

import asyncpg
from fastapi import Depends, HTTPException, Request

from api.core.config import Settings, get_settings
from api.core.errors import UNAUTHORIZED, error_detail
from api.services import AuthService, CatalogService, UserGamesService
from shared.database import DatabaseManager

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    """Identity resolved from the session token"""

    id: str
    email: str | None = None


# ============================================
# Infrastructure Dependencies
# ============================================


def get_app_settings(request: Request) -> Settings:
    """Settings the app was built with, falling back to the environment"""
    return getattr(request.app.state, "settings", None) or get_settings()


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "-")


def get_database_manager(request: Request) -> DatabaseManager:
    db_manager = getattr(request.app.state, "db", None)
    if db_manager is None:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager


def get_db_pool(db_manager: DatabaseManager = Depends(get_database_manager)) -> asyncpg.Pool:
    if not db_manager.is_connected:
        raise HTTPException(status_code=503, detail="Database not ready")
    return db_manager.pool


# ============================================
# Service Dependencies
# ============================================


def get_auth_service(settings: Settings = Depends(get_app_settings)) -> AuthService:
    return AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )


def get_user_games_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> UserGamesService:
    return UserGamesService.from_pool(pool)


def get_catalog_service(pool: asyncpg.Pool = Depends(get_db_pool)) -> CatalogService:
    return CatalogService.from_pool(pool)


# ============================================
# Authentication Dependencies
# ============================================


def extract_token(request: Request, cookie_name: str) -> str | None:
    """Session cookie first, then an ``Authorization: Bearer`` header"""
    token = request.cookies.get(cookie_name)
    if token:
        return token
    scheme, _, credentials = request.headers.get("authorization", "").partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return None


def _unauthorized(message: str) -> HTTPException:
    return HTTPException(status_code=401, detail=error_detail(UNAUTHORIZED, message))


async def get_current_user(
    request: Request,
    auth_service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_app_settings),
) -> AuthUser:
    """Resolve the caller's identity; the user id never comes from the payload."""
    token = extract_token(request, settings.auth_cookie_name)
    if not token:
        logger.warning("No auth token provided")
        raise _unauthorized("Not logged in")

    payload = auth_service.verify_token(token)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    return AuthUser(id=str(payload["sub"]), email=payload.get("email"))


# ============================================
# Query Helpers
# ============================================


def multi_query_param(request: Request, name: str) -> list[str]:
    """Accept ``name=a&name=b``, ``name[]=a`` and ``name=a,b``"""
    params = request.query_params
    values = params.getlist(name) + params.getlist(f"{name}[]")
    return [part for value in values for part in value.split(",")]
