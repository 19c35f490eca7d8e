"""Data models for the games catalog table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime


@dataclass
class Game:
    """Catalog game record (keyed by Steam app id)."""

    steam_app_id: int
    title: str
    slug: str
    genres: list[str] = field(default_factory=list)
    release_date: date | None = None
    popularity_score: float | None = None
    artwork_url: str | None = None
    achievements_total: int | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
