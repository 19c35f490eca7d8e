"""User games API routes (backlog, in-progress queue, completion)."""

import logging

from fastapi import APIRouter, Depends, Request, Response
from pydantic import ValidationError

from api.core.dependencies import (
    AuthUser,
    get_current_user,
    get_request_id,
    get_user_games_service,
    multi_query_param,
)
from api.core.errors import query_validation_error, raise_for_service_error
from api.services import UserGamesService, UserGamesServiceError
from shared.schemas.user_games import (
    CompleteUserGameCommand,
    CreateUserGameCommand,
    ReorderInProgressCommand,
    ReorderInProgressResultDTO,
    UpdateUserGameCommand,
    UserGameDTO,
    UserGamesListDTO,
    parse_user_games_query,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/user-games", tags=["user-games"])


# ============================================
# Listing
# ============================================


@router.get("", response_model=UserGamesListDTO)
async def list_user_games(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    """List the caller's entries filtered by status, paginated"""
    params = request.query_params
    try:
        query = parse_user_games_query(
            multi_query_param(request, "status"),
            search=params.get("search"),
            order_by=params.get("orderBy"),
            order_direction=params.get("orderDirection"),
            page=params.get("page"),
            page_size=params.get("pageSize"),
        )
    except ValidationError as e:
        logger.warning(f"[{request_id}] Invalid user-games query: {e.error_count()} error(s)")
        raise query_validation_error(e) from None

    try:
        return await service.list_user_games(user.id, query)
    except UserGamesServiceError as e:
        raise_for_service_error(e, "List user games", request_id)


# ============================================
# Mutations
# ============================================


@router.post("", response_model=UserGameDTO, status_code=201)
async def create_user_game(
    command: CreateUserGameCommand,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    """Add a catalog game to the backlog or the in-progress queue"""
    try:
        return await service.create_user_game(user.id, command)
    except UserGamesServiceError as e:
        raise_for_service_error(e, "Create user game", request_id)


# Declared before /{game_id} so "reorder" is never parsed as an id
@router.patch("/reorder", response_model=ReorderInProgressResultDTO)
async def reorder_in_progress(
    command: ReorderInProgressCommand,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    """Replace the positions of the caller's whole in-progress queue"""
    try:
        return await service.reorder_in_progress(user.id, command.items)
    except UserGamesServiceError as e:
        raise_for_service_error(e, "Reorder in-progress queue", request_id)


@router.patch("/{game_id}", response_model=UserGameDTO)
async def update_user_game(
    game_id: int,
    command: UpdateUserGameCommand,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    try:
        return await service.update_user_game(user.id, game_id, command)
    except UserGamesServiceError as e:
        raise_for_service_error(e, f"Update user game {game_id}", request_id)


@router.post("/{game_id}/complete", response_model=UserGameDTO)
async def complete_user_game(
    game_id: int,
    command: CompleteUserGameCommand | None = None,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    try:
        return await service.complete_user_game(
            user.id, game_id, command or CompleteUserGameCommand()
        )
    except UserGamesServiceError as e:
        raise_for_service_error(e, f"Complete user game {game_id}", request_id)


@router.delete("/{game_id}", status_code=204)
async def remove_user_game(
    game_id: int,
    user: AuthUser = Depends(get_current_user),
    service: UserGamesService = Depends(get_user_games_service),
    request_id: str = Depends(get_request_id),
):
    """Soft-remove an entry"""
    try:
        await service.remove_user_game(user.id, game_id)
    except UserGamesServiceError as e:
        raise_for_service_error(e, f"Remove user game {game_id}", request_id)
    return Response(status_code=204)
