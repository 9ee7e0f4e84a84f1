"""Core utilities: exceptions, middleware and locking."""

from bookingcore.core.exceptions import (
    AppException,
    ExternalServiceError,
    NotFoundError,
    RateLimitExceeded,
    RepositoryError,
)
from bookingcore.core.locks import KeyedLock

__all__ = [
    "AppException",
    "ExternalServiceError",
    "NotFoundError",
    "RateLimitExceeded",
    "RepositoryError",
    "KeyedLock",
]
