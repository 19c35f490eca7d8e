"""Add buttons of the catalog search results."""

import logging
from collections.abc import Callable
from typing import Literal

from .http import ApiError, QuestlogApiClient, RateLimitMetadata
from .membership import UserGameMembership
from .messages import describe_error
from .types import AddStatus, CapState

logger = logging.getLogger(__name__)

DUPLICATE_ENTRY = "DuplicateEntry"

_Outcome = Literal["created", "existing", "failed"]


class AddUserGame:
    """Per-game add state. A game that is already listed counts as added.

    With a ``membership`` map, games it already knows are reported as added
    without a request, and new entries are recorded in it.
    """

    def __init__(
        self,
        api: QuestlogApiClient,
        cap_state: CapState,
        *,
        membership: UserGameMembership | None = None,
        on_change: Callable[["AddUserGame"], None] | None = None,
    ):
        self.api = api
        self.cap_state = cap_state
        self.membership = membership
        self.on_change = on_change

        self.add_status_by_id: dict[int, AddStatus] = {}
        self.error: str | None = None
        self.rate_limit: RateLimitMetadata | None = None

    def _set_status(self, steam_app_id: int, status: AddStatus) -> None:
        self.add_status_by_id[steam_app_id] = status
        if self.on_change is not None:
            self.on_change(self)

    def is_disabled(self, steam_app_id: int) -> bool:
        if self.add_status_by_id.get(steam_app_id) in ("pending", "success"):
            return True
        return self.membership is not None and self.membership.is_member(steam_app_id)

    async def _create(self, steam_app_id: int, status: str, fallback: str) -> _Outcome:
        self.error = None
        if self.membership is not None and self.membership.is_member(steam_app_id):
            self._set_status(steam_app_id, "success")
            return "existing"

        self._set_status(steam_app_id, "pending")
        try:
            # Without a position the server appends after the highest stored one
            await self.api.create_user_game(steam_app_id, status)
        except ApiError as err:
            self.rate_limit = err.rate_limit or self.rate_limit
            if err.code == DUPLICATE_ENTRY:
                self._set_status(steam_app_id, "success")
                return "existing"
            self.error = describe_error(err, fallback)
            self._set_status(steam_app_id, "error")
            return "failed"

        self.rate_limit = self.api.last_rate_limit
        if self.membership is not None:
            self.membership.mark(steam_app_id, status)
        self._set_status(steam_app_id, "success")
        return "created"

    async def add_to_backlog(self, steam_app_id: int) -> bool:
        outcome = await self._create(steam_app_id, "backlog", "Unable to add to backlog.")
        return outcome != "failed"

    async def add_to_in_progress(self, steam_app_id: int) -> bool:
        cap = self.cap_state
        if not cap.can_add:
            self.error = cap.notice or "Your in-progress queue is full."
            self._set_status(steam_app_id, "error")
            return False

        outcome = await self._create(
            steam_app_id, "in_progress", "Unable to add to in-progress."
        )
        if outcome == "created":
            self.cap_state = CapState(
                current=min(cap.current + 1, cap.max), max=cap.max, notice=cap.notice
            )
        return outcome != "failed"
