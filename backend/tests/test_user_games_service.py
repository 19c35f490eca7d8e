import pytest

from api.services import errors
from api.services.errors import UserGamesServiceError
from shared.schemas.user_games import (
    CompleteUserGameCommand,
    CreateUserGameCommand,
    UpdateUserGameCommand,
    parse_user_games_query,
)
from tests.conftest import OTHER_USER_ID, USER_ID

pytestmark = pytest.mark.anyio


def _fill_queue(repo, user_id=USER_ID, game_ids=(10, 20, 30, 40, 50)):
    for position, game_id in enumerate(game_ids, start=1):
        repo.seed(user_id, game_id, "in_progress", position)


async def _expect_error(code, coro):
    with pytest.raises(UserGamesServiceError) as exc_info:
        await coro
    assert exc_info.value.code == code
    return exc_info.value


# ==================== create ====================


async def test_create_backlog_entry(service, user_games_repo):
    dto = await service.create_user_game(
        USER_ID, CreateUserGameCommand(steam_app_id=10, status="backlog")
    )
    assert dto.game_id == 10
    assert dto.status == "backlog"
    assert dto.in_progress_position is None
    assert dto.title == "Hollow Knight"
    assert user_games_repo.row(USER_ID, 10).status == "backlog"


async def test_create_unknown_game(service):
    await _expect_error(
        errors.GAME_NOT_FOUND,
        service.create_user_game(USER_ID, CreateUserGameCommand(steam_app_id=999, status="backlog")),
    )


async def test_create_duplicate_entry(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    await _expect_error(
        errors.DUPLICATE_ENTRY,
        service.create_user_game(USER_ID, CreateUserGameCommand(steam_app_id=10, status="backlog")),
    )


async def test_create_same_game_for_other_user_is_independent(service, user_games_repo):
    user_games_repo.seed(OTHER_USER_ID, 10, "backlog")
    dto = await service.create_user_game(
        USER_ID, CreateUserGameCommand(steam_app_id=10, status="backlog")
    )
    assert dto.status == "backlog"


async def test_create_in_progress_appends_after_highest_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    user_games_repo.seed(USER_ID, 20, "in_progress", 3)

    dto = await service.create_user_game(
        USER_ID, CreateUserGameCommand(steam_app_id=30, status="in_progress")
    )
    assert dto.in_progress_position == 4


async def test_create_in_progress_with_taken_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    await _expect_error(
        errors.DUPLICATE_POSITIONS,
        service.create_user_game(
            USER_ID,
            CreateUserGameCommand(steam_app_id=20, status="in_progress", in_progress_position=1),
        ),
    )
    assert (USER_ID, 20) not in user_games_repo.rows


async def test_create_in_progress_at_cap(service, user_games_repo):
    _fill_queue(user_games_repo)
    await _expect_error(
        errors.IN_PROGRESS_CAP_REACHED,
        service.create_user_game(USER_ID, CreateUserGameCommand(steam_app_id=60, status="in_progress")),
    )
    assert (USER_ID, 60) not in user_games_repo.rows


async def test_create_backlog_with_position_is_rejected(service, user_games_repo):
    await _expect_error(
        errors.POSITION_REQUIRED,
        service.create_user_game(
            USER_ID,
            CreateUserGameCommand(steam_app_id=10, status="backlog", in_progress_position=2),
        ),
    )
    assert user_games_repo.write_count == 0


async def test_create_storage_failure(service, user_games_repo):
    user_games_repo.fail_after("insert_entry")
    err = await _expect_error(
        errors.CREATE_FAILED,
        service.create_user_game(USER_ID, CreateUserGameCommand(steam_app_id=10, status="backlog")),
    )
    assert err.is_storage_failure


# ==================== update ====================


async def test_update_unknown_entry(service):
    await _expect_error(
        errors.ENTRY_NOT_FOUND,
        service.update_user_game(USER_ID, 10, UpdateUserGameCommand(achievements_unlocked=1)),
    )


async def test_update_is_scoped_to_caller(service, user_games_repo):
    user_games_repo.seed(OTHER_USER_ID, 10, "backlog")
    await _expect_error(
        errors.ENTRY_NOT_FOUND,
        service.update_user_game(USER_ID, 10, UpdateUserGameCommand(status="in_progress")),
    )
    assert user_games_repo.row(OTHER_USER_ID, 10).status == "backlog"


async def test_backlog_to_in_progress(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    dto = await service.update_user_game(
        USER_ID, 10, UpdateUserGameCommand(status="in_progress", in_progress_position=1)
    )
    assert dto.status == "in_progress"
    assert dto.in_progress_position == 1


async def test_backlog_to_in_progress_without_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    await _expect_error(
        errors.POSITION_REQUIRED,
        service.update_user_game(USER_ID, 10, UpdateUserGameCommand(status="in_progress")),
    )


async def test_moving_sixth_game_into_full_queue(service, user_games_repo):
    _fill_queue(user_games_repo)
    user_games_repo.seed(USER_ID, 60, "backlog")

    await _expect_error(
        errors.IN_PROGRESS_CAP_REACHED,
        service.update_user_game(
            USER_ID, 60, UpdateUserGameCommand(status="in_progress", in_progress_position=5)
        ),
    )
    assert user_games_repo.row(USER_ID, 60).status == "backlog"
    assert user_games_repo.row(USER_ID, 60).in_progress_position is None


async def test_in_place_update_when_queue_is_full(service, user_games_repo):
    _fill_queue(user_games_repo)
    dto = await service.update_user_game(
        USER_ID, 10, UpdateUserGameCommand(status="in_progress", achievements_unlocked=5)
    )
    assert dto.in_progress_position == 1
    assert dto.achievements_unlocked == 5


async def test_invalid_transition_leaves_entry_unchanged(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "completed")
    before = user_games_repo.row(USER_ID, 10)

    err = await _expect_error(
        errors.INVALID_STATUS_TRANSITION,
        service.update_user_game(
            USER_ID, 10, UpdateUserGameCommand(status="in_progress", in_progress_position=1)
        ),
    )
    assert err.details == {"from": "completed", "to": "in_progress"}
    assert user_games_repo.row(USER_ID, 10) == before


async def test_removed_entries_cannot_come_back(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "removed")
    await _expect_error(
        errors.INVALID_STATUS_TRANSITION,
        service.update_user_game(USER_ID, 10, UpdateUserGameCommand(status="backlog")),
    )


async def test_in_progress_back_to_backlog_clears_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    dto = await service.update_user_game(
        USER_ID, 10, UpdateUserGameCommand(status="backlog", in_progress_position=None)
    )
    assert dto.status == "backlog"
    assert dto.in_progress_position is None


async def test_position_with_non_queue_status_is_rejected(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    await _expect_error(
        errors.POSITION_REQUIRED,
        service.update_user_game(
            USER_ID, 10, UpdateUserGameCommand(status="backlog", in_progress_position=2)
        ),
    )
    assert user_games_repo.row(USER_ID, 10).status == "in_progress"


async def test_achievements_above_total(service, user_games_repo):
    user_games_repo.seed(USER_ID, 20, "backlog")  # Celeste has 32
    await _expect_error(
        errors.INVALID_PAYLOAD,
        service.update_user_game(USER_ID, 20, UpdateUserGameCommand(achievements_unlocked=33)),
    )
    assert user_games_repo.row(USER_ID, 20).achievements_unlocked == 0


async def test_moving_onto_taken_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    user_games_repo.seed(USER_ID, 20, "backlog")
    await _expect_error(
        errors.DUPLICATE_POSITIONS,
        service.update_user_game(
            USER_ID, 20, UpdateUserGameCommand(status="in_progress", in_progress_position=1)
        ),
    )
    assert user_games_repo.row(USER_ID, 20).status == "backlog"


async def test_update_into_completed_stamps_completed_at(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    dto = await service.update_user_game(USER_ID, 10, UpdateUserGameCommand(status="completed"))
    assert dto.completed_at is not None
    assert dto.in_progress_position is None


async def test_update_into_removed_stamps_removed_at(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    dto = await service.update_user_game(USER_ID, 10, UpdateUserGameCommand(status="removed"))
    assert dto.status == "removed"
    assert dto.removed_at is not None


# ==================== complete ====================


async def test_complete_from_queue(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    dto = await service.complete_user_game(
        USER_ID, 10, CompleteUserGameCommand(achievements_unlocked=63)
    )
    assert dto.status == "completed"
    assert dto.in_progress_position is None
    assert dto.completed_at is not None
    assert dto.removed_at is None
    assert dto.achievements_unlocked == 63


async def test_complete_from_backlog(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    dto = await service.complete_user_game(USER_ID, 10, CompleteUserGameCommand())
    assert dto.status == "completed"


@pytest.mark.parametrize("status", ["completed", "removed"])
async def test_complete_rejected_from(service, user_games_repo, status):
    user_games_repo.seed(USER_ID, 10, status)
    await _expect_error(
        errors.INVALID_STATUS_TRANSITION,
        service.complete_user_game(USER_ID, 10, CompleteUserGameCommand()),
    )


async def test_complete_achievements_above_total(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 1)
    await _expect_error(
        errors.INVALID_PAYLOAD,
        service.complete_user_game(USER_ID, 10, CompleteUserGameCommand(achievements_unlocked=64)),
    )
    assert user_games_repo.row(USER_ID, 10).status == "in_progress"


async def test_complete_unknown_entry(service):
    await _expect_error(
        errors.ENTRY_NOT_FOUND,
        service.complete_user_game(USER_ID, 10, CompleteUserGameCommand()),
    )


# ==================== remove ====================


@pytest.mark.parametrize(
    ("status", "position"), [("backlog", None), ("in_progress", 1), ("completed", None)]
)
async def test_remove(service, user_games_repo, status, position):
    user_games_repo.seed(USER_ID, 10, status, position)
    await service.remove_user_game(USER_ID, 10)

    row = user_games_repo.row(USER_ID, 10)
    assert row.status == "removed"
    assert row.in_progress_position is None
    assert row.removed_at is not None


async def test_remove_twice_keeps_first_timestamp(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    await service.remove_user_game(USER_ID, 10)
    removed_at = user_games_repo.row(USER_ID, 10).removed_at

    await _expect_error(errors.DELETE_NOT_ALLOWED, service.remove_user_game(USER_ID, 10))
    assert user_games_repo.row(USER_ID, 10).removed_at == removed_at


async def test_remove_unknown_entry(service):
    await _expect_error(errors.ENTRY_NOT_FOUND, service.remove_user_game(USER_ID, 10))


async def test_removed_queue_entry_frees_a_slot(service, user_games_repo):
    _fill_queue(user_games_repo)
    await service.remove_user_game(USER_ID, 30)

    dto = await service.create_user_game(
        USER_ID, CreateUserGameCommand(steam_app_id=60, status="in_progress")
    )
    assert dto.in_progress_position == 6


# ==================== list ====================


async def test_list_in_progress_ordered_by_position(service, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "in_progress", 2)
    user_games_repo.seed(USER_ID, 20, "in_progress", 1)
    user_games_repo.seed(USER_ID, 30, "backlog")
    user_games_repo.seed(OTHER_USER_ID, 40, "in_progress", 1)

    result = await service.list_user_games(USER_ID, parse_user_games_query(["in_progress"]))
    assert result.total == 2
    assert [r.game_id for r in result.results] == [20, 10]


async def test_list_storage_failure(service, user_games_repo):
    user_games_repo.fail_after("list_entries")
    await _expect_error(
        errors.FETCH_FAILED,
        service.list_user_games(USER_ID, parse_user_games_query([])),
    )
