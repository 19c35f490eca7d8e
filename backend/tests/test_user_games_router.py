import pytest

from tests.conftest import OTHER_USER_ID, USER_ID

pytestmark = pytest.mark.anyio


def _seed_queue(repo, *pairs):
    for game_id, position in pairs:
        repo.seed(USER_ID, game_id, "in_progress", position)


async def test_requires_authentication(anonymous_client):
    response = await anonymous_client.get("/api/v1/user-games")
    assert response.status_code == 401
    assert response.json()["detail"]["code"] == "Unauthorized"


async def test_rejects_forged_token(anonymous_client):
    from api.services import AuthService

    forged = AuthService("some-other-secret").create_access_token(USER_ID)
    response = await anonymous_client.get(
        "/api/v1/user-games", headers={"Authorization": f"Bearer {forged}"}
    )
    assert response.status_code == 401


async def test_bearer_header_is_accepted(anonymous_client, auth_token):
    response = await anonymous_client.get(
        "/api/v1/user-games", headers={"Authorization": f"Bearer {auth_token}"}
    )
    assert response.status_code == 200


async def test_list_uses_camel_case_and_queue_order(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 2), (20, 1))
    user_games_repo.seed(USER_ID, 30, "backlog")

    response = await client.get("/api/v1/user-games", params={"status": "in_progress"})

    assert response.status_code == 200
    body = response.json()
    assert body["pageSize"] == 50
    assert body["total"] == 2
    assert [r["gameId"] for r in body["results"]] == [20, 10]
    assert body["results"][0]["inProgressPosition"] == 1
    assert body["results"][0]["title"] == "Celeste"


async def test_list_accepts_bracketed_status_param(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1))
    user_games_repo.seed(USER_ID, 30, "backlog")

    response = await client.get(
        "/api/v1/user-games", params=[("status[]", "backlog"), ("status[]", "in_progress")]
    )
    assert response.json()["total"] == 2


async def test_list_only_returns_callers_entries(client, user_games_repo):
    user_games_repo.seed(OTHER_USER_ID, 10, "backlog")
    response = await client.get("/api/v1/user-games")
    assert response.json()["total"] == 0


async def test_list_invalid_query(client):
    response = await client.get("/api/v1/user-games", params={"pageSize": "500"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidQuery"


async def test_create_returns_201(client, user_games_repo):
    response = await client.post(
        "/api/v1/user-games", json={"steamAppId": 10, "status": "backlog"}
    )
    assert response.status_code == 201
    assert response.json()["status"] == "backlog"
    assert user_games_repo.row(USER_ID, 10).status == "backlog"


async def test_create_ignores_user_id_in_payload(client, user_games_repo):
    response = await client.post(
        "/api/v1/user-games",
        json={"steamAppId": 10, "status": "backlog", "userId": OTHER_USER_ID},
    )
    assert response.status_code == 201
    assert (USER_ID, 10) in user_games_repo.rows
    assert (OTHER_USER_ID, 10) not in user_games_repo.rows


async def test_create_unknown_game_is_404(client):
    response = await client.post(
        "/api/v1/user-games", json={"steamAppId": 999, "status": "backlog"}
    )
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "GameNotFound"


async def test_create_duplicate_is_409(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    response = await client.post(
        "/api/v1/user-games", json={"steamAppId": 10, "status": "backlog"}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "DuplicateEntry"


async def test_malformed_body_is_400(client):
    response = await client.post("/api/v1/user-games", json={"steamAppId": "abc"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "InvalidPayload"


async def test_patch_cap_reached_is_409(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1), (20, 2), (30, 3), (40, 4), (50, 5))
    user_games_repo.seed(USER_ID, 60, "backlog")

    response = await client.patch(
        "/api/v1/user-games/60", json={"status": "in_progress", "inProgressPosition": 5}
    )

    assert response.status_code == 409
    detail = response.json()["detail"]
    assert detail["code"] == "InProgressCapReached"
    assert detail["details"] == {"cap": 5}
    assert user_games_repo.row(USER_ID, 60).status == "backlog"


async def test_patch_invalid_transition_is_422(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "completed")
    response = await client.patch(
        "/api/v1/user-games/10", json={"status": "in_progress", "inProgressPosition": 1}
    )
    assert response.status_code == 422
    assert response.json()["detail"]["code"] == "InvalidStatusTransition"


async def test_patch_position_rule_is_400(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    response = await client.patch("/api/v1/user-games/10", json={"status": "in_progress"})
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "PositionRequiredForInProgress"


async def test_patch_unknown_entry_is_404(client):
    response = await client.patch("/api/v1/user-games/10", json={"achievementsUnlocked": 1})
    assert response.status_code == 404


async def test_patch_empty_body_is_400(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    response = await client.patch("/api/v1/user-games/10", json={})
    assert response.status_code == 400


async def test_complete(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1))
    response = await client.post(
        "/api/v1/user-games/10/complete", json={"achievementsUnlocked": 12}
    )
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "completed"
    assert body["inProgressPosition"] is None
    assert body["achievementsUnlocked"] == 12


async def test_complete_without_body(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    response = await client.post("/api/v1/user-games/10/complete")
    assert response.status_code == 200


async def test_delete_returns_204(client, user_games_repo):
    user_games_repo.seed(USER_ID, 10, "backlog")
    response = await client.delete("/api/v1/user-games/10")
    assert response.status_code == 204
    assert user_games_repo.row(USER_ID, 10).status == "removed"


async def test_delete_unknown_is_404(client):
    response = await client.delete("/api/v1/user-games/10")
    assert response.status_code == 404


async def test_reorder(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1), (20, 2))

    response = await client.patch(
        "/api/v1/user-games/reorder",
        json={"items": [{"steamAppId": 20, "position": 1}, {"steamAppId": 10, "position": 2}]},
    )

    assert response.status_code == 200
    assert response.json() == {"updated": 2}
    assert user_games_repo.queue(USER_ID) == [(20, 1), (10, 2)]


async def test_reorder_mismatch_is_409(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1), (20, 2))
    response = await client.patch(
        "/api/v1/user-games/reorder", json={"items": [{"steamAppId": 10, "position": 1}]}
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "QueueMismatch"


async def test_reorder_duplicate_positions_is_400(client, user_games_repo):
    _seed_queue(user_games_repo, (10, 1), (20, 2))
    response = await client.patch(
        "/api/v1/user-games/reorder",
        json={"items": [{"steamAppId": 10, "position": 1}, {"steamAppId": 20, "position": 1}]},
    )
    assert response.status_code == 400
    assert response.json()["detail"]["code"] == "DuplicatePositions"


async def test_storage_failure_hides_details(client, user_games_repo):
    user_games_repo.fail_after("list_entries")
    response = await client.get("/api/v1/user-games")
    assert response.status_code == 500
    detail = response.json()["detail"]
    assert detail["code"] == "BacklogFetchFailed"
    assert detail["details"] is None
    assert "list_entries" not in detail["message"]


async def test_responses_carry_request_id(client):
    response = await client.get("/api/v1/user-games", headers={"X-Request-ID": "abc123"})
    assert response.headers["X-Request-ID"] == "abc123"
