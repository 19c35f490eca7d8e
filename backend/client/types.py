"""View-model state for the client layer and the DTO -> view-model mappers."""

from collections.abc import Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Literal

from shared.models.user_game import IN_PROGRESS_CAP
from shared.schemas.user_games import UserGamesListDTO

ItemMutation = Literal["idle", "complete", "remove", "add_to_in_progress"]
AddStatus = Literal["idle", "pending", "success", "error"]


@dataclass(frozen=True)
class InProgressGameItem:
    steam_app_id: int
    title: str
    status: str
    position: int
    achievements_unlocked: int | None = None
    achievements_total: int | None = None


@dataclass(frozen=True)
class InProgressQueue:
    """Local queue plus metadata derived from the local items only."""

    items: tuple[InProgressGameItem, ...] = ()
    cap: int = IN_PROGRESS_CAP

    @property
    def total(self) -> int:
        return len(self.items)

    @property
    def is_at_cap(self) -> bool:
        return self.total >= self.cap

    def without(self, steam_app_id: int) -> "InProgressQueue":
        """Drop one item and renumber the rest 1..N."""
        kept = [item for item in self.items if item.steam_app_id != steam_app_id]
        return InProgressQueue(items=normalize_positions(kept), cap=self.cap)


def normalize_positions(items: Sequence[InProgressGameItem]) -> tuple[InProgressGameItem, ...]:
    return tuple(replace(item, position=index) for index, item in enumerate(items, start=1))


def map_user_games_to_queue(dto: UserGamesListDTO) -> InProgressQueue:
    """Keep in_progress rows only, ordered by stored position (missing last)."""
    rows = sorted(
        (r for r in dto.results if r.status == "in_progress"),
        key=lambda r: (r.in_progress_position is None, r.in_progress_position or 0),
    )
    items = tuple(
        InProgressGameItem(
            steam_app_id=r.game_id,
            title=r.title,
            status=r.status,
            position=r.in_progress_position or index,
            achievements_unlocked=r.achievements_unlocked,
            achievements_total=r.achievements_total,
        )
        for index, r in enumerate(rows, start=1)
    )
    return InProgressQueue(items=items)


def next_free_position(dto: UserGamesListDTO) -> int:
    """One past the highest stored queue position (absolute), 1 when empty."""
    positions = [
        abs(r.in_progress_position)
        for r in dto.results
        if r.status == "in_progress" and r.in_progress_position is not None
    ]
    return max(positions, default=0) + 1


@dataclass(frozen=True)
class BacklogGameItem:
    steam_app_id: int
    title: str
    status: str
    slug: str = ""
    last_updated_at: datetime | None = None
    imported_at: datetime | None = None
    achievements_unlocked: int | None = None
    achievements_total: int | None = None
    popularity_score: float | None = None


@dataclass(frozen=True)
class BacklogPage:
    items: tuple[BacklogGameItem, ...] = ()
    page: int = 1
    page_size: int = 50
    total: int = 0

    @property
    def has_more(self) -> bool:
        return len(self.items) < self.total

    def without(self, steam_app_id: int) -> "BacklogPage":
        kept = tuple(item for item in self.items if item.steam_app_id != steam_app_id)
        return replace(self, items=kept, total=max(self.total - 1, len(kept)))


def map_user_games_to_backlog_page(
    dto: UserGamesListDTO, existing: BacklogPage | None = None
) -> BacklogPage:
    """Append a fetched page to ``existing``, skipping ids already present."""
    fresh = sorted(
        (r for r in dto.results if r.status == "backlog" and r.title),
        key=lambda r: r.updated_at.timestamp() if r.updated_at else float("-inf"),
        reverse=True,
    )
    items = list(existing.items) if existing else []
    seen = {item.steam_app_id for item in items}
    for r in fresh:
        if r.game_id in seen:
            continue
        seen.add(r.game_id)
        items.append(
            BacklogGameItem(
                steam_app_id=r.game_id,
                title=r.title,
                status=r.status,
                slug=r.slug,
                last_updated_at=r.updated_at,
                imported_at=r.imported_at,
                achievements_unlocked=r.achievements_unlocked,
                achievements_total=r.achievements_total,
                popularity_score=r.popularity_score,
            )
        )
    return BacklogPage(items=tuple(items), page=dto.page, page_size=dto.page_size, total=dto.total)


@dataclass(frozen=True)
class CapState:
    """How full the in-progress queue is, as seen by the add buttons."""

    current: int
    max: int = IN_PROGRESS_CAP
    notice: str | None = None

    @property
    def can_add(self) -> bool:
        return self.current < self.max


@dataclass
class SearchFilters:
    search: str | None = None
    genres: list[str] = field(default_factory=list)
    released_after: str | None = None
    released_before: str | None = None
    sort: str | None = None
    page: int = 1
    page_size: int = 25
