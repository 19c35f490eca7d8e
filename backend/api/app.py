"""FastAPI application factory"""

import asyncio
import logging
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from api.core.config import Settings, get_settings
from api.core.errors import register_exception_handlers
from api.core.logging import setup_logging
from api.core.rate_limit import FixedWindowRateLimiter, rate_limit_middleware
from api.core.request_id import request_id_middleware
from api.routers import auth_router, games_router, user_games_router
from api.services import AuthService, UserGamesService, UserGamesServiceError
from shared.database import DatabaseManager

logger = logging.getLogger(__name__)

SERVICE_NAME = "questlog-api"
VERSION = "1.0.0"


async def _repair_queues(db_manager: DatabaseManager) -> None:
    """Rewrite queues left with invalid positions by an interrupted reorder."""
    service = UserGamesService.from_pool(db_manager.pool)
    try:
        repaired = await service.repair_all_queues()
    except UserGamesServiceError:
        logger.exception("Queue repair sweep failed")
        return
    if repaired:
        logger.warning(f"Repaired {len(repaired)} in-progress queue(s) at startup")
    else:
        logger.info("All in-progress queues valid")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle startup and shutdown"""
    settings: Settings = app.state.settings
    app.state.start_time = time.time()

    logger.info("Starting Questlog API server")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Frontend URL: {settings.frontend_url}")

    db_manager = DatabaseManager(settings.database_url, settings.pool_config)
    app.state.db = db_manager

    try:
        await asyncio.wait_for(db_manager.connect(), timeout=30)
        logger.info("Database connected")
    except TimeoutError:
        logger.error("DB connection timed out during startup, requests will get 503")
    except Exception as e:
        logger.error(f"DB connection failed during startup: {type(e).__name__}: {e}")

    if db_manager.is_connected and settings.repair_queues_on_startup:
        await _repair_queues(db_manager)

    yield

    logger.info("Shutting down Questlog API server")
    await db_manager.disconnect()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure FastAPI application"""
    settings = settings or get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Questlog API",
        description="Game backlog and in-progress queue tracker",
        version=VERSION,
        lifespan=lifespan,
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
    )
    app.state.settings = settings
    app.state.start_time = time.time()

    register_exception_handlers(app)

    # Starlette runs the last-added middleware first
    limiter = FixedWindowRateLimiter(
        settings.rate_limit_requests, settings.rate_limit_window_seconds
    )
    auth_service = AuthService(
        secret_key=settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        expire_days=settings.jwt_expire_days,
    )
    app.middleware("http")(
        rate_limit_middleware(limiter, auth_service, settings.auth_cookie_name)
    )
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[
            "X-Request-ID",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
            "Retry-After",
        ],
    )

    app.include_router(auth_router.router)
    app.include_router(user_games_router.router)
    app.include_router(games_router.router)

    # Liveness probe, no external dependency
    @app.get("/health")
    async def health(request: Request):
        return {
            "status": "healthy",
            "uptime_seconds": int(time.time() - request.app.state.start_time),
        }

    @app.get("/status")
    async def status(request: Request):
        """Readiness / status endpoint, includes a DB round trip"""
        db_manager: DatabaseManager | None = getattr(request.app.state, "db", None)
        db_ok = db_manager is not None and await db_manager.check_health()
        return {
            "service": SERVICE_NAME,
            "version": VERSION,
            "uptime_seconds": int(time.time() - request.app.state.start_time),
            "db_connected": db_ok,
            "environment": settings.environment,
        }

    @app.api_route("/ping", methods=["GET", "HEAD"], response_class=PlainTextResponse)
    async def ping():
        return "pong"

    logger.info("FastAPI application configured")

    return app
