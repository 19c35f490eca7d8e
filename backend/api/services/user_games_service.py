"""User games service (status transitions and the in-progress queue).

Invariants kept after every committed mutation:
  - at most IN_PROGRESS_CAP entries per user are in_progress
  - in_progress positions are unique positive integers per user
  - in_progress_position is set if and only if status is in_progress
  - achievements_unlocked never exceeds the game's known total
  - status changes follow ALLOWED_TRANSITIONS

Validation runs before any write. Every write is scoped by the authenticated
user id passed in by the caller.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping, Sequence
from datetime import UTC, datetime

import asyncpg

from shared.errors import StorageError, UniqueViolation
from shared.models.user_game import IN_PROGRESS_CAP, UserGameRecord
from shared.repositories.games import GamesRepository
from shared.repositories.user_games import POSITION_CONSTRAINT, UserGamesRepository
from shared.schemas.user_games import (
    CompleteUserGameCommand,
    CreateUserGameCommand,
    ReorderInProgressResultDTO,
    ReorderItem,
    UpdateUserGameCommand,
    UserGameDTO,
    UserGamesListDTO,
    UserGamesQuery,
)

from . import errors
from .errors import UserGamesServiceError

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    "backlog": frozenset({"in_progress", "removed"}),
    "in_progress": frozenset({"completed", "backlog"}),
    "completed": frozenset({"backlog"}),
    "removed": frozenset(),
}

COMPLETABLE_STATUSES = frozenset({"backlog", "in_progress"})
REMOVABLE_STATUSES = frozenset({"backlog", "in_progress", "completed"})


def is_valid_transition(current: str, target: str) -> bool:
    """Same-status updates always pass; otherwise the edge must exist."""
    if current == target:
        return True
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def derive_in_progress_position(
    existing: UserGameRecord, requested: int | None, target_status: str
) -> int | None:
    if target_status == "in_progress":
        position = requested if requested is not None else existing.in_progress_position
        if position is None:
            raise UserGamesServiceError(
                errors.POSITION_REQUIRED,
                "inProgressPosition is required when status is in_progress.",
            )
        if position < 1:
            raise UserGamesServiceError(
                errors.INVALID_PAYLOAD,
                "inProgressPosition must be a positive integer.",
                {"provided": position},
            )
        return position

    if requested is not None:
        raise UserGamesServiceError(
            errors.POSITION_REQUIRED,
            "inProgressPosition must be null unless status is in_progress.",
        )
    return None


def derive_achievements(existing: UserGameRecord, requested: int | None) -> int:
    value = requested if requested is not None else (existing.achievements_unlocked or 0)
    if value < 0:
        raise UserGamesServiceError(
            errors.INVALID_PAYLOAD,
            "achievementsUnlocked must not be negative.",
            {"provided": value},
        )
    total = existing.achievements_total
    if total is not None and value > total:
        raise UserGamesServiceError(
            errors.INVALID_PAYLOAD,
            "achievementsUnlocked exceeds total achievements for the game.",
            {"provided": value, "total": total},
        )
    return value


def plan_queue_repair(positions: Mapping[int, int | None]) -> list[tuple[int, int]]:
    """Rank a damaged queue back to 1..N.

    Returns ``(game_id, new_position)`` pairs, or an empty list when every
    position is already a positive integer. Rows are ranked by absolute
    position; on ties a negative value (the target of an interrupted reorder)
    wins over a positive one. Missing positions go last.
    """
    if all(p is not None and p >= 1 for p in positions.values()):
        return []

    def rank_key(item: tuple[int, int | None]) -> tuple[float, int, int]:
        game_id, position = item
        if position is None:
            return (math.inf, 1, game_id)
        return (abs(position), 0 if position < 0 else 1, game_id)

    ranked = sorted(positions.items(), key=rank_key)
    return [(game_id, rank) for rank, (game_id, _) in enumerate(ranked, start=1)]


class UserGamesService:
    """API-facing operations on a user's game entries."""

    def __init__(
        self,
        repo: UserGamesRepository,
        games: GamesRepository,
        *,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.repo = repo
        self.games = games
        self._clock = clock or (lambda: datetime.now(UTC))

    @classmethod
    def from_pool(cls, pool: asyncpg.Pool) -> UserGamesService:
        return cls(UserGamesRepository(pool), GamesRepository(pool))

    # ==================== Reads ====================

    async def list_user_games(self, user_id: str, query: UserGamesQuery) -> UserGamesListDTO:
        try:
            records, total = await self.repo.list_entries(user_id, query)
        except StorageError as e:
            raise UserGamesServiceError(errors.FETCH_FAILED, "Failed to query user games.") from e

        return UserGamesListDTO(
            page=query.page,
            page_size=query.page_size,
            total=total,
            results=[UserGameDTO.from_record(r) for r in records],
        )

    # ==================== Create ====================

    async def create_user_game(
        self, user_id: str, command: CreateUserGameCommand
    ) -> UserGameDTO:
        """Add a catalog game to the backlog or straight into the queue."""
        game_id = command.steam_app_id
        try:
            game = await self.games.get_game(game_id)
            if game is None:
                raise UserGamesServiceError(
                    errors.GAME_NOT_FOUND, "Game not found.", {"steamAppId": game_id}
                )

            if command.status != "in_progress":
                if command.in_progress_position is not None:
                    raise UserGamesServiceError(
                        errors.POSITION_REQUIRED,
                        "inProgressPosition must be null unless status is in_progress.",
                    )
                record = await self.repo.insert_entry(user_id, game_id, command.status, None)
            else:
                async with self.repo.transaction() as repo:
                    await self._ensure_capacity(repo, user_id)
                    position = command.in_progress_position
                    if position is None:
                        position = await repo.max_in_progress_position(user_id) + 1
                    record = await repo.insert_entry(user_id, game_id, "in_progress", position)
        except UniqueViolation as e:
            if e.constraint == POSITION_CONSTRAINT:
                raise UserGamesServiceError(
                    errors.DUPLICATE_POSITIONS, "Conflicting in-progress positions."
                ) from e
            raise UserGamesServiceError(
                errors.DUPLICATE_ENTRY, "User game already exists.", {"steamAppId": game_id}
            ) from e
        except StorageError as e:
            raise UserGamesServiceError(errors.CREATE_FAILED, "Failed to create user game.") from e

        logger.info(f"User {user_id} added game {game_id} as {record.status}")
        return UserGameDTO.from_record(record)

    # ==================== Transitions ====================

    async def update_user_game(
        self, user_id: str, game_id: int, command: UpdateUserGameCommand
    ) -> UserGameDTO:
        """General status / position / achievements update."""
        try:
            async with self.repo.transaction() as repo:
                existing = await self._fetch_entry(repo, user_id, game_id)
                target = command.status or existing.status

                if not is_valid_transition(existing.status, target):
                    raise UserGamesServiceError(
                        errors.INVALID_STATUS_TRANSITION,
                        f"Status {existing.status} cannot transition to {target}.",
                        {"from": existing.status, "to": target},
                    )

                if existing.status != "in_progress" and target == "in_progress":
                    await self._ensure_capacity(repo, user_id)

                position = derive_in_progress_position(
                    existing, command.in_progress_position, target
                )
                achievements = derive_achievements(existing, command.achievements_unlocked)

                now = self._clock()
                entering = target != existing.status
                record = await repo.update_entry(
                    user_id,
                    game_id,
                    status=target,
                    in_progress_position=position,
                    achievements_unlocked=achievements,
                    completed_at=now if entering and target == "completed" else existing.completed_at,
                    removed_at=now if entering and target == "removed" else existing.removed_at,
                )
        except UniqueViolation as e:
            raise UserGamesServiceError(
                errors.DUPLICATE_POSITIONS, "Conflicting in-progress positions."
            ) from e
        except StorageError as e:
            raise UserGamesServiceError(errors.UPDATE_FAILED, "Failed to update user game.") from e

        if record is None:
            raise UserGamesServiceError(errors.ENTRY_NOT_FOUND, "User game not found.")

        logger.info(f"User {user_id} updated game {game_id} ({existing.status} -> {target})")
        return UserGameDTO.from_record(record)

    async def complete_user_game(
        self, user_id: str, game_id: int, command: CompleteUserGameCommand
    ) -> UserGameDTO:
        try:
            async with self.repo.transaction() as repo:
                existing = await self._fetch_entry(repo, user_id, game_id)
                if existing.status not in COMPLETABLE_STATUSES:
                    raise UserGamesServiceError(
                        errors.INVALID_STATUS_TRANSITION,
                        f"Cannot complete from status {existing.status}.",
                        {"from": existing.status, "to": "completed"},
                    )
                achievements = derive_achievements(existing, command.achievements_unlocked)
                record = await repo.update_entry(
                    user_id,
                    game_id,
                    status="completed",
                    in_progress_position=None,
                    achievements_unlocked=achievements,
                    completed_at=self._clock(),
                    removed_at=None,
                )
        except StorageError as e:
            raise UserGamesServiceError(
                errors.COMPLETION_FAILED, "Failed to complete user game."
            ) from e

        if record is None:
            raise UserGamesServiceError(errors.ENTRY_NOT_FOUND, "User game not found.")

        logger.info(f"User {user_id} completed game {game_id}")
        return UserGameDTO.from_record(record)

    async def remove_user_game(self, user_id: str, game_id: int) -> None:
        """Soft delete. Allowed from any status except removed itself."""
        try:
            async with self.repo.transaction() as repo:
                existing = await self._fetch_entry(repo, user_id, game_id)
                if existing.status not in REMOVABLE_STATUSES:
                    raise UserGamesServiceError(
                        errors.DELETE_NOT_ALLOWED,
                        "Deletion is not allowed for this entry.",
                        {"status": existing.status},
                    )
                await repo.update_entry(
                    user_id,
                    game_id,
                    status="removed",
                    in_progress_position=None,
                    achievements_unlocked=existing.achievements_unlocked or 0,
                    completed_at=existing.completed_at,
                    removed_at=self._clock(),
                )
        except StorageError as e:
            raise UserGamesServiceError(errors.UPDATE_FAILED, "Failed to remove user game.") from e

        logger.info(f"User {user_id} removed game {game_id} (was {existing.status})")

    # ==================== Queue ordering ====================

    async def reorder_in_progress(
        self, user_id: str, items: Sequence[ReorderItem]
    ) -> ReorderInProgressResultDTO:
        """Replace every position in the user's queue with the submitted ranking.

        The submitted game ids must match the stored in_progress set exactly.
        Positions are written in two passes (negated, then final) inside one
        transaction so the per-statement unique index never sees a collision.
        """
        targets = [(item.steam_app_id, item.position) for item in items]
        self._validate_targets(targets)

        try:
            async with self.repo.transaction() as repo:
                stored = await repo.get_in_progress_positions(user_id, for_update=True)
                self._check_membership(stored, targets)

                damage = plan_queue_repair(stored)
                if damage:
                    logger.warning(f"User {user_id} queue had invalid positions, repairing first")
                    await self._write_two_phase(repo, user_id, damage, offset=_max_abs(stored))

                updated = await self._write_two_phase(repo, user_id, targets)
        except UniqueViolation as e:
            raise UserGamesServiceError(
                errors.DUPLICATE_POSITIONS, "Conflicting in-progress positions."
            ) from e
        except StorageError as e:
            raise UserGamesServiceError(
                errors.REORDER_FAILED, "Failed to reorder in-progress games."
            ) from e

        logger.info(f"User {user_id} reordered in-progress queue ({updated} rows)")
        return ReorderInProgressResultDTO(updated=updated)

    async def repair_queue(self, user_id: str) -> int:
        """Rewrite a queue holding negative or missing positions to 1..N.

        Recovers from a reorder that stopped between its two passes. Returns
        the number of rows rewritten, 0 when the queue was already valid.
        """
        try:
            async with self.repo.transaction() as repo:
                stored = await repo.get_in_progress_positions(user_id, for_update=True)
                plan = plan_queue_repair(stored)
                if not plan:
                    return 0
                repaired = await self._write_two_phase(repo, user_id, plan, offset=_max_abs(stored))
        except StorageError as e:
            raise UserGamesServiceError(errors.REPAIR_FAILED, "Failed to repair queue.") from e

        logger.warning(f"Repaired in-progress queue for user {user_id} ({repaired} rows)")
        return repaired

    async def repair_all_queues(self) -> dict[str, int]:
        """Repair every user queue that holds a non-positive position."""
        try:
            user_ids = await self.repo.find_users_needing_repair()
        except StorageError as e:
            raise UserGamesServiceError(errors.REPAIR_FAILED, "Failed to scan queues.") from e

        return {user_id: await self.repair_queue(user_id) for user_id in user_ids}

    # ==================== Helpers ====================

    @staticmethod
    async def _fetch_entry(repo: UserGamesRepository, user_id: str, game_id: int) -> UserGameRecord:
        existing = await repo.get_entry(user_id, game_id, for_update=True)
        if existing is None:
            raise UserGamesServiceError(
                errors.ENTRY_NOT_FOUND, "User game not found.", {"steamAppId": game_id}
            )
        return existing

    @staticmethod
    async def _ensure_capacity(repo: UserGamesRepository, user_id: str) -> None:
        # Lock the current queue rows so concurrent moves into it serialize here
        await repo.get_in_progress_positions(user_id, for_update=True)
        count = await repo.count_in_progress(user_id)
        if count >= IN_PROGRESS_CAP:
            raise UserGamesServiceError(
                errors.IN_PROGRESS_CAP_REACHED,
                "In-progress queue is full.",
                {"cap": IN_PROGRESS_CAP},
            )

    @staticmethod
    def _validate_targets(targets: Sequence[tuple[int, int]]) -> None:
        seen: set[int] = set()
        for game_id, position in targets:
            if position < 1:
                raise UserGamesServiceError(
                    errors.INVALID_PAYLOAD,
                    "Positions must be positive integers.",
                    {"steamAppId": game_id, "position": position},
                )
            if position in seen:
                raise UserGamesServiceError(
                    errors.DUPLICATE_POSITIONS,
                    "Positions must be unique.",
                    {"position": position},
                )
            seen.add(position)

    @staticmethod
    def _check_membership(
        stored: Mapping[int, int | None], targets: Sequence[tuple[int, int]]
    ) -> None:
        incoming = [game_id for game_id, _ in targets]
        if len(incoming) != len(stored) or set(incoming) != set(stored):
            raise UserGamesServiceError(
                errors.QUEUE_MISMATCH,
                "Submitted items do not match current in-progress queue.",
                {"expected": sorted(stored), "received": incoming},
            )

    @staticmethod
    async def _write_two_phase(
        repo: UserGamesRepository,
        user_id: str,
        targets: Iterable[tuple[int, int]],
        *,
        offset: int = 0,
    ) -> int:
        """Park every row on a negative slot, then write the final positions.

        ``offset`` pushes the parking slots past any value already stored,
        which matters when the queue itself holds negative positions.
        Returns the number of rows updated by the final pass.
        """
        targets = list(targets)
        for game_id, position in targets:
            await repo.set_in_progress_position(user_id, game_id, -(position + offset))

        updated = 0
        for game_id, position in targets:
            updated += await repo.set_in_progress_position(user_id, game_id, position)
        return updated


def _max_abs(positions: Mapping[int, int | None]) -> int:
    return max((abs(p) for p in positions.values() if p is not None), default=0)
