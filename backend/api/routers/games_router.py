"""Games catalog API routes."""

import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError

from api.core.dependencies import (
    AuthUser,
    get_catalog_service,
    get_current_user,
    get_request_id,
    multi_query_param,
)
from api.core.errors import query_validation_error, raise_for_service_error
from api.services import CatalogService, CatalogServiceError
from shared.schemas.games import GamesListDTO, parse_games_search_query

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/games", tags=["games"])


@router.get("", response_model=GamesListDTO)
async def search_games(
    request: Request,
    user: AuthUser = Depends(get_current_user),
    service: CatalogService = Depends(get_catalog_service),
    request_id: str = Depends(get_request_id),
):
    """Search the catalog by text, genres and release window"""
    params = request.query_params
    try:
        query = parse_games_search_query(
            multi_query_param(request, "genres"),
            search=params.get("search"),
            released_after=params.get("releasedAfter"),
            released_before=params.get("releasedBefore"),
            sort=params.get("sort"),
            page=params.get("page"),
            page_size=params.get("pageSize"),
        )
    except ValidationError as e:
        logger.warning(f"[{request_id}] Invalid games query: {e.error_count()} error(s)")
        raise query_validation_error(e) from None

    try:
        return await service.search_games(query)
    except CatalogServiceError as e:
        raise_for_service_error(e, "Search games", request_id)
