"""
Business logic for users.

Accounts live in the auth provider.  At sign-up the service also writes
a display copy of the profile under ``user:<id>`` in the key-value
store; that copy is only read back for display and never consulted for
authorization.  Provider and store calls run in the threadpool.
"""

import logging
from typing import Any, Mapping, Union

from starlette.concurrency import run_in_threadpool

from ..core.auth_provider import AuthProvider
from ..core.errors import AuthProviderError, UnauthorizedError, ValidationError
from ..core.kv_store import KeyValueStore
from ..schemas.user import AuthSession, CallerIdentity, LoginRequest, SignupRequest, UserProfile
from .initiative_service import parse_payload, utcnow


logger = logging.getLogger(__name__)

USER_PREFIX = "user:"


def user_key(user_id: str) -> str:
    return f"{USER_PREFIX}{user_id}"


def _blank(value: Any) -> bool:
    return not value or (isinstance(value, str) and not value.strip())


class UserService:
    """Sign-up, sign-in and profile lookup."""

    def __init__(self, store: KeyValueStore, provider: AuthProvider) -> None:
        self.store = store
        self.provider = provider

    async def sign_up(self, payload: Union[SignupRequest, Mapping[str, Any]]) -> CallerIdentity:
        """Create an account with the provider and mirror its profile.

        Provider refusals (duplicate e-mail, weak password ...) are
        reported as ``ValidationError`` carrying the provider's message.
        """
        data: SignupRequest = parse_payload(SignupRequest, payload)
        if _blank(data.email) or _blank(data.password) or _blank(data.name):
            raise ValidationError("Email, password, and name are required")

        logger.info("Registering user %s", data.email)
        try:
            user = await run_in_threadpool(self.provider.sign_up, data.email, data.password, data.name)
        except AuthProviderError as e:
            logger.warning("Sign up error: %s", e.message)
            raise ValidationError(e.message) from e

        profile = UserProfile(
            id=user.id,
            email=data.email,
            name=data.name,
            role="user",
            created_at=utcnow(),
        )
        await run_in_threadpool(self.store.set, user_key(user.id), profile.model_dump(mode="json", by_alias=True))
        return CallerIdentity(id=user.id, email=data.email, name=data.name)

    async def sign_in(self, payload: Union[LoginRequest, Mapping[str, Any]]) -> AuthSession:
        data: LoginRequest = parse_payload(LoginRequest, payload)
        if _blank(data.email) or _blank(data.password):
            raise ValidationError("Email and password are required")
        try:
            return await run_in_threadpool(self.provider.sign_in, data.email, data.password)
        except AuthProviderError as e:
            logger.info("Failed sign in for %s: %s", data.email, e.message)
            raise UnauthorizedError("Invalid credentials") from e

    async def get_profile(self, caller: CallerIdentity) -> UserProfile:
        """Return the mirrored profile, or one built from the token identity."""
        document = await run_in_threadpool(self.store.get, user_key(caller.id))
        if document is None:
            return UserProfile(id=caller.id, email=caller.email, name=caller.name)
        return UserProfile.model_validate(document)
