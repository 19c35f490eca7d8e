"""Shared data models for the questlog backend."""

from .game import Game
from .user_game import IN_PROGRESS_CAP, STATUSES, GamePlayStatus, UserGameRecord

__all__ = [
    "IN_PROGRESS_CAP",
    "STATUSES",
    "Game",
    "GamePlayStatus",
    "UserGameRecord",
]
