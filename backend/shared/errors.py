"""Row-store error signals shared by every repository.

Repositories never leak driver exceptions upward. A uniqueness violation is
reported as :class:`UniqueViolation` so callers can map it to a domain error;
everything else the driver raises becomes a plain :class:`StorageError`.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

import asyncpg

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A read or write against the row store failed."""

    def __init__(self, operation: str, message: str | None = None) -> None:
        super().__init__(message or f"Storage operation failed: {operation}")
        self.operation = operation


class UniqueViolation(StorageError):
    """A write was rejected by a unique constraint or unique index."""

    def __init__(self, operation: str, constraint: str | None = None) -> None:
        super().__init__(operation, f"Unique constraint violated during {operation}: {constraint}")
        self.constraint = constraint


@contextmanager
def translate_errors(operation: str) -> Iterator[None]:
    """Re-raise asyncpg / network failures as row-store errors."""
    try:
        yield
    except asyncpg.UniqueViolationError as exc:
        raise UniqueViolation(operation, getattr(exc, "constraint_name", None)) from exc
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        logger.debug(f"{operation} failed: {type(exc).__name__}: {exc}")
        raise StorageError(operation) from exc
