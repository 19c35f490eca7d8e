"""User-facing copy for API failures."""

from .http import NETWORK_ERROR, ApiError

GENERIC_RETRY = "Something went wrong. Please try again."

_MESSAGES_BY_CODE = {
    "InProgressCapReached": "Your in-progress queue is full. Finish or remove a game there to add new ones.",
    "QueueMismatch": "Your queue changed somewhere else. Refresh to see the latest order and try again.",
    "DuplicatePositions": "Two games ended up in the same spot. Refresh and try reordering again.",
    "DuplicateEntry": "That game is already in your library.",
    "EntryNotFound": "That game is no longer in your library. Refresh to update the list.",
    "InvalidStatusTransition": "That game can't be moved there from its current state.",
    "Unauthorized": "Your session has expired. Please sign in again.",
}


def describe_error(err: Exception, fallback: str = GENERIC_RETRY) -> str:
    """Pick the copy shown to the user for ``err``."""
    if not isinstance(err, ApiError):
        return fallback

    if err.code == NETWORK_ERROR or err.is_network_error:
        return "We couldn't reach the server. Check your connection and try again."

    if err.code == "RateLimited" or err.status == 429:
        retry_after = err.retry_after
        if retry_after:
            return f"You're sending requests too quickly. Try again in {retry_after} seconds."
        return "You're sending requests too quickly. Please wait a moment and retry."

    if err.code in _MESSAGES_BY_CODE:
        return _MESSAGES_BY_CODE[err.code]

    if err.status >= 500 or not err.message:
        return fallback
    return err.message
