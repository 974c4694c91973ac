"""
Error taxonomy shared by services and API handlers.

Services raise these exceptions; the endpoints translate them into
``HTTPException`` using the ``status_code`` carried by each class.
"""

from fastapi import status


class ServiceError(Exception):
    """Base class for errors with a well-defined HTTP status."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or invalid input."""

    status_code = status.HTTP_400_BAD_REQUEST


class UnauthorizedError(ServiceError):
    """Missing, malformed or rejected bearer token."""

    status_code = status.HTTP_401_UNAUTHORIZED


class NotFoundError(ServiceError):
    """No record exists for the requested identifier."""

    status_code = status.HTTP_404_NOT_FOUND


class UpstreamFailure(ServiceError):
    """The key-value store or the auth provider failed unexpectedly."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AuthProviderError(Exception):
    """The auth provider rejected a request (bad credentials, duplicate
    email, invalid token).  Callers decide which ``ServiceError`` it maps to.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
