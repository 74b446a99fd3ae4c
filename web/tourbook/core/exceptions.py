from typing import Any, Optional, Dict


class BaseError(Exception):
    """Base exception class for the application"""

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class NotFoundError(BaseError):
    """Raised when a referenced entity does not exist"""

    def __init__(self, entity: str, id: Any):
        super().__init__(
            message=f"{entity} {id} not found",
            status_code=404,
            details={"entity": entity, "id": id}
        )


class ValidationError(BaseError):
    """Raised for malformed or missing input fields"""

    def __init__(self, message: str, field: Optional[str] = None):
        details = {"field": field} if field else {}
        super().__init__(
            message=message,
            status_code=400,
            details=details
        )


class CapacityExceededError(ValidationError):
    """Raised when an admission would overcommit a slot"""

    def __init__(self, slot_key: str, requested: int, remaining: int):
        super().__init__(
            message=(
                f"Not enough seats for {slot_key}: "
                f"requested {requested}, remaining {max(remaining, 0)}"
            ),
            field="quantity",
        )
        self.details.update(requested=requested, remaining=max(remaining, 0))


class AuthenticationError(BaseError):
    """Exception raised for authentication errors"""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(message=message, status_code=401)


class AuthorizationError(BaseError):
    """Exception raised for authorization errors"""

    def __init__(self, message: str = "Access denied"):
        super().__init__(message=message, status_code=403)


class ConflictError(BaseError):
    """Raised when a write collides with existing state"""

    def __init__(self, message: str):
        super().__init__(message=message, status_code=409)


class ExternalPayloadError(BaseError):
    """Raised when an inbound webhook payload cannot be interpreted.

    Webhook adapters catch it, record it and still acknowledge the delivery.
    """

    def __init__(self, source: str, message: str):
        super().__init__(
            message=f"Invalid {source} payload: {message}",
            status_code=400,
            details={"source": source}
        )
        self.source = source


class ExternalServiceError(BaseError):
    """Exception raised when external service fails"""

    def __init__(self, service: str, message: str):
        super().__init__(
            message=f"External service error: {message}",
            status_code=503,
            details={"service": service}
        )


class StorageError(BaseError):
    """Underlying persistence failure"""

    def __init__(self, message: str = "Storage error"):
        super().__init__(message=message, status_code=500)
