"""Custom exceptions for the repository layer."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from pymongo.errors import PyMongoError


class RepositoryError(RuntimeError):
    """Base exception raised when a repository operation fails."""


class TransientStoreError(RepositoryError):
    """Raised when a read or write against the store fails (network, timeout, conflict).

    Never interpret this as "no data": a lookup that raised is unknown, not empty.
    """


class NotFoundRepositoryError(RepositoryError):
    """Raised when an expected document is missing."""


@contextmanager
def store_errors(action: str) -> Iterator[None]:
    """Translate driver failures raised inside the block into ``TransientStoreError``."""

    try:
        yield
    except PyMongoError as exc:
        raise TransientStoreError(f"{action} failed: {exc}") from exc


__all__ = [
    "NotFoundRepositoryError",
    "RepositoryError",
    "TransientStoreError",
    "store_errors",
]
