"""Request / response contracts for the games catalog endpoint."""

from __future__ import annotations

from datetime import date
from typing import Literal

from pydantic import Field, model_validator

from shared.models.game import Game

from .user_games import MAX_SEARCH_LENGTH, CamelModel, sanitize_search

GamesSearchSort = Literal["popularity", "release_date_desc", "title_asc"]


class GameSummaryDTO(CamelModel):
    steam_app_id: int
    title: str
    slug: str
    genres: list[str] = Field(default_factory=list)
    release_date: date | None = None
    popularity_score: float | None = None
    artwork_url: str | None = None
    achievements_total: int | None = None

    @classmethod
    def from_game(cls, game: Game) -> GameSummaryDTO:
        return cls(
            steam_app_id=game.steam_app_id,
            title=game.title,
            slug=game.slug,
            genres=list(game.genres or []),
            release_date=game.release_date,
            popularity_score=game.popularity_score,
            artwork_url=game.artwork_url,
            achievements_total=game.achievements_total,
        )


class GamesListDTO(CamelModel):
    page: int
    page_size: int
    total: int
    results: list[GameSummaryDTO]


class GamesSearchQuery(CamelModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=25, ge=1, le=100)
    search: str | None = Field(default=None, max_length=MAX_SEARCH_LENGTH)
    genres: list[str] = Field(default_factory=list)
    released_after: date | None = None
    released_before: date | None = None
    sort: GamesSearchSort = "popularity"

    @model_validator(mode="after")
    def _check_release_range(self) -> GamesSearchQuery:
        if self.released_after and self.released_before and self.released_after > self.released_before:
            raise ValueError("releasedAfter must be earlier than releasedBefore")
        return self

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def parse_games_search_query(
    genres: list[str],
    *,
    search: str | None = None,
    released_after: str | None = None,
    released_before: str | None = None,
    sort: str | None = None,
    page: str | int | None = None,
    page_size: str | int | None = None,
) -> GamesSearchQuery:
    """Build a validated catalog query. Raises ``pydantic.ValidationError``."""
    unique_genres: list[str] = []
    for value in genres:
        trimmed = value.strip()
        if trimmed and trimmed not in unique_genres:
            unique_genres.append(trimmed)

    raw: dict = {"genres": unique_genres, "search": sanitize_search(search)}
    optional = {
        "released_after": (released_after or "").strip() or None,
        "released_before": (released_before or "").strip() or None,
        "sort": sort,
        "page": page,
        "page_size": page_size,
    }
    raw.update({key: value for key, value in optional.items() if value is not None})
    return GamesSearchQuery.model_validate(raw)
