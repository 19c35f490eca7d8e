"""Service-layer error types.

Domain errors carry a stable ``code`` the HTTP layer maps to a status.
Storage failures reuse the same class with a ``*Failed`` code; their cause is
chained for logging and never sent to the caller.
"""

from __future__ import annotations

from typing import Any

# Domain outcomes the caller can act on
ENTRY_NOT_FOUND = "EntryNotFound"
GAME_NOT_FOUND = "GameNotFound"
INVALID_STATUS_TRANSITION = "InvalidStatusTransition"
IN_PROGRESS_CAP_REACHED = "InProgressCapReached"
POSITION_REQUIRED = "PositionRequiredForInProgress"
DUPLICATE_POSITIONS = "DuplicatePositions"
QUEUE_MISMATCH = "QueueMismatch"
DUPLICATE_ENTRY = "DuplicateEntry"
INVALID_PAYLOAD = "InvalidPayload"
DELETE_NOT_ALLOWED = "DeleteNotAllowed"

# Storage / availability failures
FETCH_FAILED = "BacklogFetchFailed"
CREATE_FAILED = "BacklogCreateFailed"
UPDATE_FAILED = "BacklogUpdateFailed"
COMPLETION_FAILED = "CompletionFailed"
REORDER_FAILED = "BacklogReorderFailed"
REPAIR_FAILED = "QueueRepairFailed"
CATALOG_QUERY_FAILED = "CatalogQueryFailed"

STORAGE_FAILURE_CODES = frozenset(
    {
        FETCH_FAILED,
        CREATE_FAILED,
        UPDATE_FAILED,
        COMPLETION_FAILED,
        REORDER_FAILED,
        REPAIR_FAILED,
        CATALOG_QUERY_FAILED,
    }
)


class ServiceError(Exception):
    """Base for errors raised by the service layer."""

    def __init__(self, code: str, message: str, details: Any = None) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details

    @property
    def is_storage_failure(self) -> bool:
        return self.code in STORAGE_FAILURE_CODES

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, message={self.message!r})"


class UserGamesServiceError(ServiceError):
    """Raised by UserGamesService."""


class CatalogServiceError(ServiceError):
    """Raised by CatalogService."""
