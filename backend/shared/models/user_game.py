"""Data models for the user_games table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal

GamePlayStatus = Literal["backlog", "in_progress", "completed", "removed"]

STATUSES: tuple[GamePlayStatus, ...] = ("backlog", "in_progress", "completed", "removed")

# Maximum number of simultaneous in_progress entries per user
IN_PROGRESS_CAP = 5


@dataclass
class UserGameRecord:
    """A user's entry for one catalog game, joined with the catalog columns it renders with."""

    user_id: str
    game_id: int
    status: str  # GamePlayStatus
    title: str
    slug: str
    in_progress_position: int | None = None
    achievements_unlocked: int = 0
    achievements_total: int | None = None
    popularity_score: float | None = None
    completed_at: datetime | None = None
    imported_at: datetime | None = None
    updated_at: datetime | None = None
    removed_at: datetime | None = None
