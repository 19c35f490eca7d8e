import pytest

from api.services import errors
from api.services.errors import UserGamesServiceError
from api.services.user_games_service import (
    ALLOWED_TRANSITIONS,
    derive_achievements,
    derive_in_progress_position,
    is_valid_transition,
    plan_queue_repair,
)
from shared.models.user_game import STATUSES, UserGameRecord

ALLOWED = {
    ("backlog", "in_progress"),
    ("backlog", "removed"),
    ("in_progress", "completed"),
    ("in_progress", "backlog"),
    ("completed", "backlog"),
}


def _record(status="backlog", position=None, unlocked=0, total=None) -> UserGameRecord:
    return UserGameRecord(
        user_id="u",
        game_id=1,
        status=status,
        title="Game",
        slug="game",
        in_progress_position=position,
        achievements_unlocked=unlocked,
        achievements_total=total,
    )


@pytest.mark.parametrize("current", STATUSES)
@pytest.mark.parametrize("target", STATUSES)
def test_transition_graph(current, target):
    expected = current == target or (current, target) in ALLOWED
    assert is_valid_transition(current, target) is expected


def test_removed_is_terminal():
    assert ALLOWED_TRANSITIONS["removed"] == frozenset()
    assert not any(is_valid_transition("removed", t) for t in STATUSES if t != "removed")


def test_completed_cannot_jump_back_into_queue():
    assert not is_valid_transition("completed", "in_progress")


class TestDeriveInProgressPosition:
    def test_uses_supplied_position(self):
        assert derive_in_progress_position(_record("backlog"), 3, "in_progress") == 3

    def test_falls_back_to_existing_position(self):
        assert derive_in_progress_position(_record("in_progress", 2), None, "in_progress") == 2

    def test_missing_position_for_in_progress(self):
        with pytest.raises(UserGamesServiceError) as exc_info:
            derive_in_progress_position(_record("backlog"), None, "in_progress")
        assert exc_info.value.code == errors.POSITION_REQUIRED

    def test_position_rejected_outside_in_progress(self):
        with pytest.raises(UserGamesServiceError) as exc_info:
            derive_in_progress_position(_record("in_progress", 1), 1, "backlog")
        assert exc_info.value.code == errors.POSITION_REQUIRED

    def test_leaving_queue_clears_position(self):
        assert derive_in_progress_position(_record("in_progress", 4), None, "completed") is None


class TestDeriveAchievements:
    def test_keeps_existing_when_not_supplied(self):
        assert derive_achievements(_record(unlocked=7, total=10), None) == 7

    def test_accepts_value_equal_to_total(self):
        assert derive_achievements(_record(total=10), 10) == 10

    def test_rejects_value_above_total(self):
        with pytest.raises(UserGamesServiceError) as exc_info:
            derive_achievements(_record(total=10), 11)
        assert exc_info.value.code == errors.INVALID_PAYLOAD
        assert exc_info.value.details == {"provided": 11, "total": 10}

    def test_unknown_total_is_unbounded(self):
        assert derive_achievements(_record(total=None), 500) == 500


class TestPlanQueueRepair:
    def test_healthy_queue_needs_nothing(self):
        assert plan_queue_repair({1: 1, 2: 3, 3: 2}) == []

    def test_empty_queue(self):
        assert plan_queue_repair({}) == []

    def test_interrupted_reorder_keeps_negative_intent(self):
        # Phase one finished for games 1 and 2 only
        plan = plan_queue_repair({1: -2, 2: -1, 3: 3})
        assert plan == [(2, 1), (1, 2), (3, 3)]

    def test_negative_wins_tie_on_absolute_value(self):
        plan = plan_queue_repair({1: 1, 2: -1, 3: 2})
        assert plan == [(2, 1), (1, 2), (3, 3)]

    def test_missing_and_zero_positions_are_ranked(self):
        plan = plan_queue_repair({5: None, 6: 0, 7: 4})
        assert plan == [(6, 1), (7, 2), (5, 3)]
