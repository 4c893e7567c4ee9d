"""
API error taxonomy.

Every error the API returns on purpose is one of these. The exception
handlers registered in ``main`` render them with the shared envelope:
``{"error": message}`` or ``{"errors": [...]}`` for validation failures.
"""

from typing import Any, Dict, List, Optional

from fastapi import status


class APIError(Exception):
    """Base class for errors rendered with the shared envelope."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "An error occurred processing your request"

    def __init__(self, message: Optional[str] = None, headers: Optional[Dict[str, str]] = None):
        self.message = message or self.default_message
        self.headers = headers
        super().__init__(self.message)

    def to_content(self) -> Dict[str, Any]:
        return {"error": self.message}


class ValidationError(APIError):
    """User-fixable input problems; carries the full list of field errors."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or self.default_message)

    def to_content(self) -> Dict[str, Any]:
        return {"errors": self.errors}


class BadRequestError(APIError):
    """Malformed request that is not a field-level validation failure."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Invalid request"


class AuthenticationError(APIError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Authentication required"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class AuthorizationError(APIError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Insufficient permissions"


class NotFoundError(APIError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class RateLimitError(APIError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    default_message = "Too many requests. Please try again later."


class DependencyError(APIError):
    """Datastore or other backing service failed; answered with a request id."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotificationError(Exception):
    """A notification sink failed to deliver; never rendered to clients."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")
