"""Client view-models for the Questlog API."""

from .add_game import AddUserGame
from .backlog import BacklogModel
from .catalog_search import CatalogSearch
from .http import ApiError, QuestlogApiClient, RateLimitMetadata, parse_rate_limit_headers
from .in_progress import InProgressQueueModel
from .membership import UserGameMembership
from .messages import describe_error
from .types import CapState, InProgressQueue, SearchFilters

__all__ = [
    "AddUserGame",
    "ApiError",
    "BacklogModel",
    "CapState",
    "CatalogSearch",
    "InProgressQueue",
    "InProgressQueueModel",
    "QuestlogApiClient",
    "RateLimitMetadata",
    "SearchFilters",
    "UserGameMembership",
    "describe_error",
    "parse_rate_limit_headers",
]
