"""Catalog search with stale-response suppression.

Each search gets an increasing request id and cancels the one before it. A
response is applied only while its id is still the latest, so a slow early
request can never overwrite a newer result.
"""

import asyncio
import itertools
import logging
from collections.abc import Callable

from shared.schemas.games import GamesListDTO

from .http import ApiError, QuestlogApiClient, RateLimitMetadata
from .messages import describe_error
from .types import SearchFilters

logger = logging.getLogger(__name__)


class CatalogSearch:
    def __init__(
        self,
        api: QuestlogApiClient,
        *,
        on_change: Callable[["CatalogSearch"], None] | None = None,
    ):
        self.api = api
        self.on_change = on_change

        self.results: GamesListDTO | None = None
        self.loading = False
        self.error: str | None = None
        self.rate_limit: RateLimitMetadata | None = None

        self._ids = itertools.count(1)
        self._latest_id = 0
        self._task: asyncio.Task | None = None

    @property
    def latest_request_id(self) -> int:
        return self._latest_id

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _is_latest(self, request_id: int) -> bool:
        return request_id == self._latest_id

    async def search(self, filters: SearchFilters) -> GamesListDTO | None:
        """Run a search, superseding any search still in flight.

        Returns the results when this call was still the latest one when it
        finished, None when it was superseded.
        """
        request_id = next(self._ids)
        self._latest_id = request_id
        if self._task is not None and not self._task.done():
            self._task.cancel()

        self.loading = True
        self.error = None
        self._changed()

        task = asyncio.create_task(self._fetch(filters))
        self._task = task
        try:
            dto = await task
        except asyncio.CancelledError:
            if task.cancelled() and not self._is_latest(request_id):
                logger.debug(f"Catalog search {request_id} superseded")
                return None
            raise
        except ApiError as err:
            if self._is_latest(request_id):
                self.results = None
                self.rate_limit = err.rate_limit or self.rate_limit
                self.error = describe_error(err, "Unable to fetch games. Please try again.")
                self.loading = False
                self._changed()
            return None

        if not self._is_latest(request_id):
            return None

        self.results = dto
        self.rate_limit = self.api.last_rate_limit
        self.loading = False
        self._changed()
        return dto

    async def _fetch(self, filters: SearchFilters) -> GamesListDTO:
        return await self.api.search_games(
            search=filters.search,
            genres=filters.genres,
            released_after=filters.released_after,
            released_before=filters.released_before,
            sort=filters.sort,
            page=filters.page,
            page_size=filters.page_size,
        )

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._latest_id = next(self._ids)
        self.loading = False
        self._changed()
