from .base import BaseRepository, BaseService
from .exceptions import (
    BaseError,
    NotFoundError,
    ValidationError,
    CapacityExceededError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalPayloadError,
    ExternalServiceError,
    StorageError,
)
from .config import Settings, get_settings

__all__ = [
    # Base classes
    "BaseRepository",
    "BaseService",

    # Exceptions
    "BaseError",
    "NotFoundError",
    "ValidationError",
    "CapacityExceededError",
    "AuthenticationError",
    "AuthorizationError",
    "ConflictError",
    "ExternalPayloadError",
    "ExternalServiceError",
    "StorageError",

    # Config
    "Settings",
    "get_settings",
]
