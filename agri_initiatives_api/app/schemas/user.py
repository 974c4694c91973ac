"""
Pydantic models for user data.

Identity is owned by the auth provider.  ``CallerIdentity`` is what a
validated bearer token resolves to; ``UserProfile`` is the display copy
mirrored into the key-value store at sign-up.  Passwords never appear
in any response model.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from .initiative import CamelModel


class SignupRequest(BaseModel):
    """Schema for registering a user.

    Fields are optional at the schema level so a missing one is
    reported by the service with a single message rather than a list
    of field errors.
    """

    model_config = ConfigDict(extra="forbid")

    email: Optional[str] = Field(None, examples=["farmer@example.com"])
    password: Optional[str] = Field(None, examples=["strongpassword"])
    name: Optional[str] = Field(None, examples=["أحمد علي"])


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    email: Optional[str] = Field(None, examples=["farmer@example.com"])
    password: Optional[str] = Field(None, examples=["strongpassword"])


class CallerIdentity(BaseModel):
    """The principal resolved from a validated bearer token."""

    id: str
    email: Optional[str] = None
    name: Optional[str] = None


class AuthSession(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: CallerIdentity


class UserProfile(CamelModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    role: str = "user"
    created_at: Optional[datetime] = None


class SignupResponse(BaseModel):
    message: str
    user: CallerIdentity


class ProfileResponse(BaseModel):
    user: UserProfile
