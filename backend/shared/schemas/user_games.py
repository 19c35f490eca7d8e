"""Request / response contracts for the user-games endpoints.

Shared by the API routers (request validation, response models) and the
client view-models (response parsing). Field names are snake_case in Python
and camelCase on the wire.
"""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from shared.models.user_game import GamePlayStatus, UserGameRecord

OrderableField = Literal["in_progress_position", "updated_at", "popularity_score"]
OrderDirection = Literal["asc", "desc"]

MAX_SEARCH_LENGTH = 256


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def sanitize_search(value: str | None) -> str | None:
    """Trim and collapse whitespace; empty strings become None."""
    if not isinstance(value, str):
        return None
    normalized = " ".join(value.split())
    return normalized or None


# ============================================
# Responses
# ============================================


class UserGameDTO(CamelModel):
    game_id: int
    title: str
    status: GamePlayStatus
    in_progress_position: int | None = None
    achievements_unlocked: int | None = None
    achievements_total: int | None = None
    completed_at: datetime | None = None
    imported_at: datetime | None = None
    updated_at: datetime | None = None
    removed_at: datetime | None = None
    popularity_score: float | None = None
    slug: str = ""

    @classmethod
    def from_record(cls, record: UserGameRecord) -> UserGameDTO:
        return cls(
            game_id=record.game_id,
            title=record.title,
            status=record.status,  # type: ignore[arg-type]
            in_progress_position=record.in_progress_position,
            achievements_unlocked=record.achievements_unlocked,
            achievements_total=record.achievements_total,
            completed_at=record.completed_at,
            imported_at=record.imported_at,
            updated_at=record.updated_at,
            removed_at=record.removed_at,
            popularity_score=record.popularity_score,
            slug=record.slug,
        )


class UserGamesListDTO(CamelModel):
    page: int
    page_size: int
    total: int
    results: list[UserGameDTO]


class ReorderInProgressResultDTO(CamelModel):
    """Number of rows repositioned by the second reorder pass."""

    updated: int


# ============================================
# Commands
# ============================================


class CreateUserGameCommand(CamelModel):
    """New entry. The position/status pairing is checked by the service."""

    steam_app_id: int = Field(gt=0)
    status: Literal["backlog", "in_progress"]
    in_progress_position: int | None = Field(default=None, ge=1)


class UpdateUserGameCommand(CamelModel):
    """Partial update; at least one field must be present.

    Which statuses are reachable, and whether a position may accompany them,
    depends on the stored entry and is decided by the service.
    """

    status: GamePlayStatus | None = None
    in_progress_position: int | None = Field(default=None, ge=1)
    achievements_unlocked: int | None = Field(default=None, ge=0)

    @model_validator(mode="after")
    def _check_fields(self) -> UpdateUserGameCommand:
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided")
        return self


class CompleteUserGameCommand(CamelModel):
    achievements_unlocked: int | None = Field(default=None, ge=0)


class ReorderItem(CamelModel):
    steam_app_id: int = Field(gt=0)
    position: int = Field(ge=1)


class ReorderInProgressCommand(CamelModel):
    """Full target ordering of the in-progress queue.

    Duplicate game ids are rejected here. Duplicate positions are left to the
    service so they surface as ``DuplicatePositions``.
    """

    items: list[ReorderItem] = Field(min_length=1)

    @field_validator("items")
    @classmethod
    def _unique_game_ids(cls, items: list[ReorderItem]) -> list[ReorderItem]:
        seen: set[int] = set()
        for item in items:
            if item.steam_app_id in seen:
                raise ValueError(f"steamAppId values must be unique ({item.steam_app_id})")
            seen.add(item.steam_app_id)
        return items


# ============================================
# List query
# ============================================


class UserGamesQuery(BaseModel):
    statuses: list[GamePlayStatus] = Field(default_factory=list)
    search: str | None = Field(default=None, max_length=MAX_SEARCH_LENGTH)
    order_by: OrderableField = "updated_at"
    order_direction: OrderDirection = "desc"
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=50, ge=1, le=100)

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def parse_user_games_query(
    statuses: list[str],
    *,
    search: str | None = None,
    order_by: str | None = None,
    order_direction: str | None = None,
    page: str | int | None = None,
    page_size: str | int | None = None,
) -> UserGamesQuery:
    """Build a validated list query, applying the ordering defaults.

    Raises ``pydantic.ValidationError`` on invalid input.
    """
    unique_statuses: list[str] = []
    for value in statuses:
        normalized = value.strip()
        if normalized and normalized not in unique_statuses:
            unique_statuses.append(normalized)

    raw: dict = {"statuses": unique_statuses, "search": sanitize_search(search)}
    if page is not None:
        raw["page"] = page
    if page_size is not None:
        raw["page_size"] = page_size
    if order_by is not None:
        raw["order_by"] = order_by
    if order_direction is not None:
        raw["order_direction"] = order_direction

    query = UserGamesQuery.model_validate(raw)

    only_in_progress = bool(query.statuses) and all(s == "in_progress" for s in query.statuses)
    if order_by is None:
        if only_in_progress:
            return query.model_copy(
                update={"order_by": "in_progress_position", "order_direction": "asc"}
            )
        return query.model_copy(update={"order_by": "updated_at", "order_direction": "desc"})

    if order_direction is None and query.order_by == "in_progress_position":
        return query.model_copy(update={"order_direction": "asc"})

    return query
