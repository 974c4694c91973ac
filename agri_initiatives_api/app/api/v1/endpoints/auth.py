"""
Authentication endpoints for API v1.

Sign-up and sign-in are delegated to the configured auth provider.
Sign-up additionally stores a display copy of the profile, which
``/users/me`` returns.
"""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends

from agri_initiatives_api.app.api.deps import (
    get_current_user,
    get_user_service,
    require_public_key,
    to_http_exception,
)
from agri_initiatives_api.app.schemas.user import (
    AuthSession,
    CallerIdentity,
    ProfileResponse,
    SignupResponse,
)
from agri_initiatives_api.app.services.user_service import UserService


router = APIRouter()


@router.post("/signup", response_model=SignupResponse, dependencies=[Depends(require_public_key)])
async def signup(
    payload: Dict[str, Any] = Body(...),
    service: UserService = Depends(get_user_service),
) -> SignupResponse:
    """Register a new account.

    Expects ``email``, ``password`` and ``name``.  The account is
    confirmed immediately.  Provider errors such as an already
    registered e-mail are returned as 400 with the provider's message.
    """
    try:
        user = await service.sign_up(payload)
    except Exception as e:
        raise to_http_exception(e, "Internal server error during sign up") from e
    return SignupResponse(message="User created successfully", user=user)


@router.post("/login", response_model=AuthSession)
async def login(
    payload: Dict[str, Any] = Body(...),
    service: UserService = Depends(get_user_service),
) -> AuthSession:
    """Exchange e-mail and password for a bearer token."""
    try:
        return await service.sign_in(payload)
    except Exception as e:
        raise to_http_exception(e, "Internal server error during sign in") from e


@router.get("/users/me", response_model=ProfileResponse)
async def me(
    current_user: CallerIdentity = Depends(get_current_user),
    service: UserService = Depends(get_user_service),
) -> ProfileResponse:
    try:
        profile = await service.get_profile(current_user)
    except Exception as e:
        raise to_http_exception(e, "Failed to fetch profile") from e
    return ProfileResponse(user=profile)
