"""Backlog view-model: paginated list with optimistic move / remove."""

import logging
from collections.abc import Callable

from shared.models.user_game import IN_PROGRESS_CAP

from .http import ApiError, QuestlogApiClient, RateLimitMetadata
from .messages import describe_error
from .types import (
    BacklogGameItem,
    BacklogPage,
    ItemMutation,
    map_user_games_to_backlog_page,
    next_free_position,
)

logger = logging.getLogger(__name__)

BACKLOG_PAGE_SIZE = 50


class BacklogModel:
    def __init__(
        self,
        api: QuestlogApiClient,
        *,
        page_size: int = BACKLOG_PAGE_SIZE,
        on_change: Callable[["BacklogModel"], None] | None = None,
    ):
        self.api = api
        self.page_size = page_size
        self.on_change = on_change

        self.backlog: BacklogPage | None = None
        self.loading = False
        self.loading_more = False
        self.error: str | None = None
        self.rate_limit: RateLimitMetadata | None = None
        self.active_item_mutations: dict[int, ItemMutation] = {}

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _fail(self, err: ApiError, fallback: str) -> None:
        self.rate_limit = err.rate_limit or self.rate_limit
        self.error = describe_error(err, fallback)

    def _set_item_state(self, steam_app_id: int, state: ItemMutation) -> None:
        self.active_item_mutations[steam_app_id] = state
        self._changed()

    async def _fetch_page(self, page: int, existing: BacklogPage | None) -> BacklogPage:
        dto = await self.api.list_user_games(
            ["backlog"],
            page=page,
            page_size=self.page_size,
            order_by="updated_at",
            order_direction="desc",
        )
        self.rate_limit = self.api.last_rate_limit
        return map_user_games_to_backlog_page(dto, existing)

    async def load_initial(self) -> None:
        self.loading = True
        self.error = None
        self._changed()
        try:
            self.backlog = await self._fetch_page(1, None)
        except ApiError as err:
            self._fail(err, "Unable to load your backlog. Please try again.")
        finally:
            self.loading = False
            self._changed()

    async def load_more(self) -> None:
        """Fetch the next page and merge it, skipping ids already listed."""
        if self.loading_more or self.backlog is None or not self.backlog.has_more:
            return

        self.loading_more = True
        self.error = None
        self._changed()
        try:
            self.backlog = await self._fetch_page(self.backlog.page + 1, self.backlog)
        except ApiError as err:
            self._fail(err, "We couldn't load more games. Please try again.")
        finally:
            self.loading_more = False
            self._changed()

    async def add_to_in_progress(self, item: BacklogGameItem) -> None:
        if self.backlog is None:
            return

        previous = self.backlog
        self.error = None
        self.backlog = previous.without(item.steam_app_id)
        self._set_item_state(item.steam_app_id, "add_to_in_progress")

        try:
            queue_page = await self.api.list_user_games(
                ["in_progress"], page_size=IN_PROGRESS_CAP, order_by="in_progress_position"
            )
            # Positions keep their gaps after a game leaves the queue
            position = next_free_position(queue_page)
            await self.api.update_user_game(
                item.steam_app_id, status="in_progress", in_progress_position=position
            )
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self.backlog = previous
            self._fail(err, "We couldn't move that game. Please try again.")
        finally:
            self._set_item_state(item.steam_app_id, "idle")

    async def remove_from_backlog(self, item: BacklogGameItem) -> None:
        if self.backlog is None:
            return

        previous = self.backlog
        self.error = None
        self.backlog = previous.without(item.steam_app_id)
        self._set_item_state(item.steam_app_id, "remove")

        try:
            await self.api.remove_user_game(item.steam_app_id)
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self.backlog = previous
            self._fail(err, "We couldn't remove that game. Please try again.")
        finally:
            self._set_item_state(item.steam_app_id, "idle")
