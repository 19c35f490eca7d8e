"""In-progress queue view-model with optimistic mutations.

Every mutation snapshots the local queue, applies the change, calls the API
and restores the snapshot if the call fails.
"""

import logging
from collections.abc import Callable, Sequence

from shared.models.user_game import IN_PROGRESS_CAP

from .http import ApiError, QuestlogApiClient, RateLimitMetadata
from .messages import describe_error
from .types import (
    InProgressGameItem,
    InProgressQueue,
    ItemMutation,
    map_user_games_to_queue,
    normalize_positions,
)

logger = logging.getLogger(__name__)


class InProgressQueueModel:
    def __init__(
        self,
        api: QuestlogApiClient,
        *,
        on_change: Callable[["InProgressQueueModel"], None] | None = None,
    ):
        self.api = api
        self.on_change = on_change

        self.queue: InProgressQueue | None = None
        self.loading = False
        self.error: str | None = None
        self.rate_limit: RateLimitMetadata | None = None
        self.is_reordering = False
        self.active_item_mutations: dict[int, ItemMutation] = {}

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change(self)

    def _fail(self, err: ApiError, fallback: str) -> None:
        self.rate_limit = err.rate_limit or self.rate_limit
        self.error = describe_error(err, fallback)
        logger.debug(f"In-progress mutation failed: {err!r}")

    def _set_item_state(self, steam_app_id: int, state: ItemMutation) -> None:
        self.active_item_mutations[steam_app_id] = state
        self._changed()

    async def load(self) -> None:
        self.loading = True
        self.error = None
        self._changed()
        try:
            dto = await self.api.list_user_games(
                ["in_progress"],
                order_by="in_progress_position",
                order_direction="asc",
                page_size=IN_PROGRESS_CAP,
            )
            self.queue = map_user_games_to_queue(dto)
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self._fail(err, "Unable to load your in-progress queue. Please try again.")
        finally:
            self.loading = False
            self._changed()

    async def reorder(self, items: Sequence[InProgressGameItem]) -> None:
        """Submit ``items`` in their new order; positions become 1..N."""
        if not items:
            return

        previous = self.queue
        normalized = normalize_positions(items)
        self.is_reordering = True
        self.error = None
        self.queue = InProgressQueue(items=normalized)
        self._changed()

        try:
            await self.api.reorder_in_progress(
                [(item.steam_app_id, item.position) for item in normalized]
            )
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self.queue = previous
            self._fail(err, "We couldn't update the queue. Please try again.")
        finally:
            self.is_reordering = False
            self._changed()

    async def complete(
        self, item: InProgressGameItem, achievements_unlocked: int | None = None
    ) -> None:
        if self.queue is None:
            return

        previous = self.queue
        self.error = None
        self.queue = previous.without(item.steam_app_id)
        self._set_item_state(item.steam_app_id, "complete")

        try:
            await self.api.complete_user_game(item.steam_app_id, achievements_unlocked)
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self.queue = previous
            self._fail(err, "We couldn't complete the game. Please try again.")
        finally:
            self._set_item_state(item.steam_app_id, "idle")

    async def remove_to_backlog(self, item: InProgressGameItem) -> None:
        if self.queue is None:
            return

        previous = self.queue
        self.error = None
        self.queue = previous.without(item.steam_app_id)
        self._set_item_state(item.steam_app_id, "remove")

        try:
            await self.api.update_user_game(
                item.steam_app_id, status="backlog", in_progress_position=None
            )
            self.rate_limit = self.api.last_rate_limit
        except ApiError as err:
            self.queue = previous
            self._fail(err, "We couldn't update the game. Please try again.")
        finally:
            self._set_item_state(item.steam_app_id, "idle")
