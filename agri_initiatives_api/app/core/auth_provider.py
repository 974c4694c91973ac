"""
Auth provider adapters.

The service never decides on its own who a caller is: it asks an auth
provider.  Two providers implement the same three operations
(``sign_up``, ``sign_in``, ``get_user``):

* :class:`LocalAuthProvider` keeps accounts in the ``auth_users``
  SQLite table and issues HS256 tokens signed with the configured
  secret.
* :class:`SupabaseAuthProvider` calls the hosted Supabase Auth (GoTrue)
  REST API with ``requests``.

A provider that refuses a request (wrong password, duplicate e-mail,
expired token) raises ``AuthProviderError``.  A provider that cannot be
reached raises ``UpstreamFailure``.  The provider is built once at
startup by :func:`build_auth_provider` and shared by all requests.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ..schemas.user import AuthSession, CallerIdentity
from .config import Settings
from .db import get_connection, get_database_path, init_db
from .errors import AuthProviderError, UpstreamFailure
from .security import create_access_token, decode_access_token, hash_password, verify_password


logger = logging.getLogger(__name__)


class AuthProvider(ABC):
    """Issues and validates bearer tokens."""

    @abstractmethod
    def sign_up(self, email: str, password: str, name: str) -> CallerIdentity:
        """Create an account and return its identity."""

    @abstractmethod
    def sign_in(self, email: str, password: str) -> AuthSession:
        """Exchange credentials for an access token."""

    @abstractmethod
    def get_user(self, token: str) -> CallerIdentity:
        """Return the identity a token belongs to."""


class LocalAuthProvider(AuthProvider):
    """Accounts stored in SQLite, tokens signed with ``secret_key``."""

    def __init__(self, database_path: str, secret_key: str, token_ttl_seconds: int) -> None:
        self.database_path = database_path
        self.secret_key = secret_key
        self.token_ttl_seconds = token_ttl_seconds

    def initialize(self) -> None:
        init_db(self.database_path)

    def _fetch_one(self, query: str, params: tuple) -> Optional[sqlite3.Row]:
        conn = get_connection(self.database_path)
        try:
            return conn.execute(query, params).fetchone()
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Auth store read failed: {e}") from e
        finally:
            conn.close()

    def sign_up(self, email: str, password: str, name: str) -> CallerIdentity:
        email = email.strip().lower()
        user_id = str(uuid.uuid4())
        conn = get_connection(self.database_path)
        try:
            conn.execute(
                "INSERT INTO auth_users (id, email, password, name) VALUES (?, ?, ?, ?)",
                (user_id, email, hash_password(password), name),
            )
            conn.commit()
        except sqlite3.IntegrityError as e:
            raise AuthProviderError(
                "A user with this email address has already been registered", 422
            ) from e
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Auth store write failed: {e}") from e
        finally:
            conn.close()
        logger.info("Registered local account %s", user_id)
        return CallerIdentity(id=user_id, email=email, name=name)

    def sign_in(self, email: str, password: str) -> AuthSession:
        row = self._fetch_one(
            "SELECT id, email, password, name FROM auth_users WHERE email = ?",
            (email.strip().lower(),),
        )
        if not row or not verify_password(password, row["password"]):
            raise AuthProviderError("Invalid login credentials", 400)
        token = create_access_token(
            {"sub": row["id"], "email": row["email"]}, self.secret_key, self.token_ttl_seconds
        )
        user = CallerIdentity(id=row["id"], email=row["email"], name=row["name"])
        return AuthSession(access_token=token, user=user)

    def get_user(self, token: str) -> CallerIdentity:
        payload = decode_access_token(token, self.secret_key)
        if not payload or not payload.get("sub"):
            raise AuthProviderError("Invalid or expired token", 401)
        row = self._fetch_one(
            "SELECT id, email, name FROM auth_users WHERE id = ?", (str(payload["sub"]),)
        )
        if not row:
            raise AuthProviderError("User no longer exists", 401)
        return CallerIdentity(id=row["id"], email=row["email"], name=row["name"])


class SupabaseAuthProvider(AuthProvider):
    """Supabase Auth (GoTrue) over its REST API.

    Administrative calls (user creation, token validation) use the
    service role key.  Password sign-in uses the public anon key when
    one is configured.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_role_key: str,
        anon_key: str = "",
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.base_url = f"{base_url.rstrip('/')}/auth/v1"
        self.service_role_key = service_role_key
        self.anon_key = anon_key or service_role_key
        self.timeout = timeout
        self.session = session or requests.Session()

    def _request(
        self,
        method: str,
        path: str,
        *,
        api_key: str,
        bearer: str,
        params: Dict[str, str] | None = None,
        json_body: Any | None = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        headers = {"apikey": api_key, "Authorization": f"Bearer {bearer}"}
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method, url=url, params=params, json=json_body,
                headers=headers, timeout=self.timeout,
            )
        except requests.RequestException as exc:
            logger.error("Auth provider request failed: %s", exc)
            raise UpstreamFailure(f"Auth provider request failed: {exc}") from exc
        if response.status_code >= 500:
            logger.error("Auth provider returned %s", response.status_code)
            raise UpstreamFailure(f"Auth provider returned {response.status_code}")
        try:
            data = response.json() if response.content else {}
        except ValueError:
            data = {}
        if response.status_code >= 400:
            message = (
                data.get("msg")
                or data.get("error_description")
                or data.get("message")
                or data.get("error")
                or response.text
                or f"HTTP {response.status_code}"
            )
            raise AuthProviderError(str(message), response.status_code)
        return data

    @staticmethod
    def _to_identity(user: Dict[str, Any]) -> CallerIdentity:
        if not user.get("id"):
            raise AuthProviderError("Auth provider returned no user", 401)
        metadata = user.get("user_metadata") or {}
        return CallerIdentity(id=user["id"], email=user.get("email"), name=metadata.get("name"))

    def sign_up(self, email: str, password: str, name: str) -> CallerIdentity:
        # The e-mail is confirmed immediately since no mail server is
        # configured for the project.
        data = self._request(
            "POST",
            "/admin/users",
            api_key=self.service_role_key,
            bearer=self.service_role_key,
            json_body={
                "email": email,
                "password": password,
                "user_metadata": {"name": name},
                "email_confirm": True,
            },
        )
        return self._to_identity(data.get("user", data))

    def sign_in(self, email: str, password: str) -> AuthSession:
        data = self._request(
            "POST",
            "/token",
            api_key=self.anon_key,
            bearer=self.anon_key,
            params={"grant_type": "password"},
            json_body={"email": email, "password": password},
        )
        if not data.get("access_token"):
            raise AuthProviderError("Auth provider returned no access token", 401)
        return AuthSession(
            access_token=data["access_token"],
            token_type=data.get("token_type", "bearer"),
            user=self._to_identity(data.get("user") or {}),
        )

    def get_user(self, token: str) -> CallerIdentity:
        data = self._request("GET", "/user", api_key=self.service_role_key, bearer=token)
        return self._to_identity(data)


def build_auth_provider(settings: Settings) -> AuthProvider:
    """Construct the provider selected by ``settings.auth_backend``."""
    backend = settings.auth_backend.lower()
    if backend == "local":
        provider = LocalAuthProvider(
            get_database_path(settings.database_url),
            settings.secret_key,
            settings.access_token_expire_minutes * 60,
        )
        provider.initialize()
        return provider
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for AUTH_BACKEND=supabase")
        return SupabaseAuthProvider(
            base_url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            anon_key=settings.supabase_anon_key,
            timeout=settings.http_timeout,
        )
    raise RuntimeError(f"Unknown AUTH_BACKEND: {settings.auth_backend}")
