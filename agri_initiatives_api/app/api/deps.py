"""
FastAPI dependencies shared by the v1 endpoints.

The key-value store and the auth provider are built once by
``create_app`` and kept on ``app.state``; these helpers hand them (and
the services built on top of them) to request handlers.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, Request, status

from ..core.auth_provider import AuthProvider
from ..core.config import Settings
from ..core.errors import ServiceError, UpstreamFailure
from ..core.kv_store import KeyValueStore
from ..core.security import authenticate, check_public_key
from ..schemas.user import CallerIdentity
from ..services.initiative_service import InitiativeService
from ..services.statistics_service import StatisticsService
from ..services.user_service import UserService


logger = logging.getLogger(__name__)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_kv_store(request: Request) -> KeyValueStore:
    return request.app.state.kv_store


def get_auth_provider(request: Request) -> AuthProvider:
    return request.app.state.auth_provider


def get_initiative_service(store: KeyValueStore = Depends(get_kv_store)) -> InitiativeService:
    return InitiativeService(store)


def get_statistics_service(store: KeyValueStore = Depends(get_kv_store)) -> StatisticsService:
    return StatisticsService(store)


def get_user_service(
    store: KeyValueStore = Depends(get_kv_store),
    provider: AuthProvider = Depends(get_auth_provider),
) -> UserService:
    return UserService(store, provider)


def to_http_exception(exc: Exception, failure_message: str) -> HTTPException:
    """Map a service-layer exception to the HTTP error returned to clients.

    Validation, authentication and not-found errors keep their own
    status and message.  Anything else, including ``UpstreamFailure``, is
    logged and reported as a 500 with ``failure_message``.
    """
    if isinstance(exc, ServiceError) and not isinstance(exc, UpstreamFailure):
        headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
        return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)
    logger.error("%s: %s", failure_message, exc, exc_info=exc)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=failure_message)


def get_current_user(
    authorization: Optional[str] = Header(None),
    provider: AuthProvider = Depends(get_auth_provider),
) -> CallerIdentity:
    """Dependency that resolves the caller behind the bearer token.

    Every call round-trips to the auth provider; nothing is cached.
    Raises HTTP 401 when the header is missing or malformed or the
    provider rejects the token.
    """
    try:
        return authenticate(authorization, provider)
    except Exception as e:
        if isinstance(e, ServiceError) and e.status_code == status.HTTP_401_UNAUTHORIZED:
            logger.info("Rejected request: %s", e.message)
        raise to_http_exception(e, "Failed to validate access token") from e


def require_public_key(
    authorization: Optional[str] = Header(None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Require the public anon key on routes that precede sign-in."""
    try:
        check_public_key(authorization, settings.public_anon_key)
    except ServiceError as e:
        raise to_http_exception(e, "Failed to validate public key") from e
