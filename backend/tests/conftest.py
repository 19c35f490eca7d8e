from datetime import date

import httpx
import pytest

from api.app import create_app
from api.core.config import Settings
from api.core.dependencies import get_catalog_service, get_user_games_service
from api.services import AuthService, CatalogService, UserGamesService
from tests.fakes import FakeGamesRepository, FakeUserGamesRepository, make_game

USER_ID = "user-1"
OTHER_USER_ID = "user-2"
JWT_SECRET = "test-secret-key"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def games_repo() -> FakeGamesRepository:
    return FakeGamesRepository(
        [
            make_game(10, "Hollow Knight", achievements_total=63, popularity_score=95.0,
                      genres=["metroidvania"], release_date=date(2017, 2, 24)),
            make_game(20, "Celeste", achievements_total=32, popularity_score=90.0,
                      genres=["platformer"], release_date=date(2018, 1, 25)),
            make_game(30, "Hades", achievements_total=49, popularity_score=97.0,
                      genres=["roguelike"], release_date=date(2020, 9, 17)),
            make_game(40, "Outer Wilds", achievements_total=None, popularity_score=88.0,
                      genres=["exploration"], release_date=date(2019, 5, 28)),
            make_game(50, "Disco Elysium", achievements_total=45, popularity_score=85.0,
                      genres=["rpg"], release_date=date(2019, 10, 15)),
            make_game(60, "Tunic", achievements_total=27, popularity_score=80.0,
                      genres=["action"], release_date=date(2022, 3, 16)),
            make_game(70, "Inscryption", achievements_total=19, popularity_score=82.0,
                      genres=["roguelike"], release_date=date(2021, 10, 19)),
        ]
    )


@pytest.fixture
def user_games_repo(games_repo: FakeGamesRepository) -> FakeUserGamesRepository:
    return FakeUserGamesRepository(games_repo)


@pytest.fixture
def service(user_games_repo: FakeUserGamesRepository, games_repo: FakeGamesRepository) -> UserGamesService:
    return UserGamesService(user_games_repo, games_repo)  # type: ignore[arg-type]


@pytest.fixture
def catalog_service(games_repo: FakeGamesRepository) -> CatalogService:
    return CatalogService(games_repo)  # type: ignore[arg-type]


@pytest.fixture
def settings() -> Settings:
    return Settings(
        database_url="postgresql://localhost/questlog_test",
        jwt_secret_key=JWT_SECRET,
        environment="testing",
        rate_limit_requests=1000,
        repair_queues_on_startup=False,
        _env_file=None,  # type: ignore[call-arg]
    )


@pytest.fixture
def app(settings: Settings, service: UserGamesService, catalog_service: CatalogService):
    application = create_app(settings)
    application.dependency_overrides[get_user_games_service] = lambda: service
    application.dependency_overrides[get_catalog_service] = lambda: catalog_service
    return application


@pytest.fixture
def auth_token(settings: Settings) -> str:
    auth = AuthService(settings.jwt_secret_key)
    return auth.create_access_token(USER_ID, "player@example.com")


@pytest.fixture
async def client(app, auth_token: str):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(
        transport=transport,
        base_url="http://testserver",
        cookies={"auth_token": auth_token},
    ) as http:
        yield http


@pytest.fixture
async def anonymous_client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as http:
        yield http
