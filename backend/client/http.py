"""HTTP client for the Questlog API.

Used by the view-models in this package. Every failed call raises
:class:`ApiError`; transport failures are reported with ``status == 0`` and
``code == "NetworkError"`` so callers handle both through one path.
"""

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from shared.schemas.games import GamesListDTO
from shared.schemas.user_games import (
    ReorderInProgressResultDTO,
    UserGameDTO,
    UserGamesListDTO,
)

logger = logging.getLogger(__name__)

NETWORK_ERROR = "NetworkError"
API_PREFIX = "/api/v1"


@dataclass(frozen=True)
class RateLimitMetadata:
    limit: int | None = None
    remaining: int | None = None
    reset: int | None = None  # epoch seconds
    retry_after: int | None = None


def _int_header(headers: Mapping[str, str], name: str) -> int | None:
    value = headers.get(name)
    if value is None:
        return None
    try:
        return int(float(value))
    except ValueError:
        return None


def parse_rate_limit_headers(headers: Mapping[str, str]) -> RateLimitMetadata | None:
    """Read the ``X-RateLimit-*`` / ``Retry-After`` headers, None if absent."""
    meta = RateLimitMetadata(
        limit=_int_header(headers, "x-ratelimit-limit"),
        remaining=_int_header(headers, "x-ratelimit-remaining"),
        reset=_int_header(headers, "x-ratelimit-reset"),
        retry_after=_int_header(headers, "retry-after"),
    )
    if meta == RateLimitMetadata():
        return None
    return meta


class ApiError(Exception):
    """A request that did not produce a 2xx response."""

    def __init__(
        self,
        message: str,
        status: int,
        code: str | None = None,
        details: Any = None,
        rate_limit: RateLimitMetadata | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details
        self.rate_limit = rate_limit

    @property
    def is_network_error(self) -> bool:
        return self.status == 0

    @property
    def retry_after(self) -> int | None:
        if isinstance(self.details, dict) and isinstance(self.details.get("retryAfter"), int):
            return self.details["retryAfter"]
        if self.rate_limit is not None:
            return self.rate_limit.retry_after
        return None

    def __repr__(self) -> str:
        return f"ApiError(status={self.status}, code={self.code!r}, message={self.message!r})"


def _error_from_response(response: httpx.Response) -> ApiError:
    rate_limit = parse_rate_limit_headers(response.headers)
    try:
        body = response.json()
    except ValueError:
        body = None

    detail = body.get("detail") if isinstance(body, dict) else None
    if isinstance(detail, dict):
        return ApiError(
            message=str(detail.get("message") or response.reason_phrase),
            status=response.status_code,
            code=detail.get("code"),
            details=detail.get("details"),
            rate_limit=rate_limit,
        )
    return ApiError(
        message=str(detail or response.reason_phrase or "Request failed"),
        status=response.status_code,
        rate_limit=rate_limit,
    )


class QuestlogApiClient:
    """Thin async wrapper over the ``/api/v1`` routes.

    Owns one shared ``httpx.AsyncClient``; call :meth:`close` when done.
    ``last_rate_limit`` holds the metadata of the most recent response.
    """

    def __init__(
        self,
        base_url: str,
        *,
        auth_token: str | None = None,
        cookie_name: str = "auth_token",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        cookies = {cookie_name: auth_token} if auth_token else None
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            cookies=cookies,
            timeout=timeout,
            transport=transport,
        )
        self.last_rate_limit: RateLimitMetadata | None = None

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "QuestlogApiClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Any = None,
        json: Any = None,
    ) -> httpx.Response:
        try:
            response = await self._http.request(
                method, f"{API_PREFIX}{path}", params=params, json=json
            )
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise ApiError(
                "Network request failed. Check your connection.", status=0, code=NETWORK_ERROR
            ) from e

        self.last_rate_limit = parse_rate_limit_headers(response.headers) or self.last_rate_limit
        if response.is_success:
            return response

        err = _error_from_response(response)
        logger.debug(f"{method} {path} -> {response.status_code} {err.code}")
        raise err

    # ------------------------------------------------------------------
    # User games
    # ------------------------------------------------------------------

    async def list_user_games(
        self,
        statuses: Iterable[str],
        *,
        page: int = 1,
        page_size: int | None = None,
        search: str | None = None,
        order_by: str | None = None,
        order_direction: str | None = None,
    ) -> UserGamesListDTO:
        params: list[tuple[str, str | int]] = [("status", s) for s in statuses]
        params.append(("page", page))
        optional = {
            "pageSize": page_size,
            "search": search,
            "orderBy": order_by,
            "orderDirection": order_direction,
        }
        params.extend((key, value) for key, value in optional.items() if value is not None)

        response = await self._request("GET", "/user-games", params=params)
        return UserGamesListDTO.model_validate(response.json())

    async def create_user_game(
        self, steam_app_id: int, status: str, in_progress_position: int | None = None
    ) -> UserGameDTO:
        body: dict[str, Any] = {"steamAppId": steam_app_id, "status": status}
        if in_progress_position is not None:
            body["inProgressPosition"] = in_progress_position
        response = await self._request("POST", "/user-games", json=body)
        return UserGameDTO.model_validate(response.json())

    async def update_user_game(self, game_id: int, **fields: Any) -> UserGameDTO:
        """PATCH with camelCase keys built from snake_case keyword arguments."""
        aliases = {
            "status": "status",
            "in_progress_position": "inProgressPosition",
            "achievements_unlocked": "achievementsUnlocked",
        }
        body = {aliases[key]: value for key, value in fields.items()}
        response = await self._request("PATCH", f"/user-games/{game_id}", json=body)
        return UserGameDTO.model_validate(response.json())

    async def complete_user_game(
        self, game_id: int, achievements_unlocked: int | None = None
    ) -> UserGameDTO:
        body = {} if achievements_unlocked is None else {"achievementsUnlocked": achievements_unlocked}
        response = await self._request("POST", f"/user-games/{game_id}/complete", json=body)
        return UserGameDTO.model_validate(response.json())

    async def remove_user_game(self, game_id: int) -> None:
        await self._request("DELETE", f"/user-games/{game_id}")

    async def reorder_in_progress(
        self, items: Sequence[tuple[int, int]]
    ) -> ReorderInProgressResultDTO:
        """``items`` are ``(steam_app_id, position)`` pairs."""
        body = {"items": [{"steamAppId": gid, "position": pos} for gid, pos in items]}
        response = await self._request("PATCH", "/user-games/reorder", json=body)
        return ReorderInProgressResultDTO.model_validate(response.json())

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    async def search_games(
        self,
        *,
        search: str | None = None,
        genres: Iterable[str] = (),
        released_after: str | None = None,
        released_before: str | None = None,
        sort: str | None = None,
        page: int = 1,
        page_size: int | None = None,
    ) -> GamesListDTO:
        params: list[tuple[str, str | int]] = [("genres", g) for g in genres]
        params.append(("page", page))
        optional = {
            "search": search,
            "releasedAfter": released_after,
            "releasedBefore": released_before,
            "sort": sort,
            "pageSize": page_size,
        }
        params.extend((key, value) for key, value in optional.items() if value is not None)

        response = await self._request("GET", "/games", params=params)
        return GamesListDTO.model_validate(response.json())
