"""Which catalog games the user already tracks, for the search results.

Pages through every backlog and in-progress entry and keeps a
``steam_app_id -> status`` map so the add buttons can be disabled up front.
Loads follow the same rule as :class:`CatalogSearch`: a newer load cancels
the previous one and only the latest load may write its result.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable

from .http import ApiError, QuestlogApiClient, RateLimitMetadata
from .messages import describe_error

logger = logging.getLogger(__name__)

MEMBERSHIP_PAGE_SIZE = 100
MEMBER_STATUSES = ("backlog", "in_progress")


class UserGameMembership:
    def __init__(
        self,
        api: QuestlogApiClient,
        *,
        page_size: int = MEMBERSHIP_PAGE_SIZE,
        on_change: Callable[["UserGameMembership"], None] | None = None,
    ):
        self.api = api
        self.page_size = page_size
        self.on_change = on_change

        self.status_by_id: dict[int, str] = {}
        self.loading = False
        self.error: str | None = None
        self.rate_limit: RateLimitMetadata | None = None

        self._ids = itertools.count(1)
        self._latest_id = 0
        self._task: asyncio.Task | None = None

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _is_latest(self, request_id: int) -> bool:
        return request_id == self._latest_id

    def status_of(self, steam_app_id: int) -> str | None:
        return self.status_by_id.get(steam_app_id)

    def is_member(self, steam_app_id: int) -> bool:
        return steam_app_id in self.status_by_id

    def mark(self, steam_app_id: int, status: str) -> None:
        """Record a game added locally so its buttons disable without a reload."""
        self.status_by_id[steam_app_id] = status
        self._changed()

    async def load(self) -> dict[int, str] | None:
        """Rebuild the map, superseding any load still in flight.

        Returns the map when this load was still the latest one, None when
        it was superseded or failed.
        """
        request_id = next(self._ids)
        self._latest_id = request_id
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self.loading = True
        self.error = None
        self._changed()

        task = asyncio.create_task(self._collect())
        self._task = task
        try:
            collected = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._is_latest(request_id):
                logger.debug(f"Membership load {request_id} superseded")
                return None
            raise
        except ApiError as err:
            if self._is_latest(request_id):
                self.rate_limit = err.rate_limit or self.rate_limit
                self.error = describe_error(
                    err, "Unable to check which games are already in your library."
                )
                self.loading = False
                self._changed()
            return None

        if not self._is_latest(request_id):
            return None

        self.status_by_id = collected
        self.rate_limit = self.api.last_rate_limit
        self.loading = False
        self._changed()
        return collected

    async def _collect(self) -> dict[int, str]:
        collected: dict[int, str] = {}
        page = 1
        while True:
            dto = await self.api.list_user_games(
                MEMBER_STATUSES,
                page=page,
                page_size=self.page_size,
                order_by="updated_at",
                order_direction="desc",
            )
            for entry in dto.results:
                if entry.status in MEMBER_STATUSES:
                    collected[entry.game_id] = entry.status

            fetched = page * dto.page_size
            if len(dto.results) < self.page_size or fetched >= dto.total:
                return collected
            page += 1

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._latest_id = next(self._ids)
        self.loading = False
        self._changed()
