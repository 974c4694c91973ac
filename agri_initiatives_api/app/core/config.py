"""
Simple configuration management.

The ``Settings`` dataclass reads configuration directly from
environment variables.  Defaults are provided for all fields so the
service starts with a local SQLite store and the built‑in auth
provider; point ``KV_BACKEND`` and ``AUTH_BACKEND`` at ``supabase`` to
use the hosted collaborators instead.
"""

import os
from dataclasses import dataclass


@dataclass
class Settings:
    """Application settings loaded from environment variables."""

    project_name: str = os.getenv("PROJECT_NAME", "Agricultural Initiatives API")
    api_version: str = os.getenv("API_VERSION", "1.0.0")
    # All routes are mounted under this prefix.
    api_prefix: str = os.getenv("API_PREFIX", "/api/v1")
    debug: bool = os.getenv("DEBUG", "false").lower() in {"1", "true", "yes"}
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    log_file: str = os.getenv("LOG_FILE", "")

    host: str = os.getenv("HOST", "0.0.0.0")
    port: int = int(os.getenv("PORT", "8000"))

    # Which implementation backs the key-value store: ``sqlite`` or
    # ``supabase``.
    kv_backend: str = os.getenv("KV_BACKEND", "sqlite")
    # Path to the SQLite database file.  Relative paths are resolved
    # against the project root by the ``db`` module.
    database_url: str = os.getenv("DATABASE_URL", "initiatives.db")

    # Which implementation validates bearer tokens: ``local`` or
    # ``supabase``.
    auth_backend: str = os.getenv("AUTH_BACKEND", "local")
    secret_key: str = os.getenv("SECRET_KEY", "change_me")
    access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24)))
    algorithm: str = os.getenv("ALGORITHM", "HS256")

    # Public key clients must present when signing up.  Empty means the
    # signup route is open.
    public_anon_key: str = os.getenv("PUBLIC_ANON_KEY", "")

    supabase_url: str = os.getenv("SUPABASE_URL", "")
    supabase_service_role_key: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    supabase_kv_table: str = os.getenv("SUPABASE_KV_TABLE", "kv_store")

    # Timeout in seconds for calls to hosted collaborators.
    http_timeout: float = float(os.getenv("HTTP_TIMEOUT", "15"))


# Instantiate settings once so other modules can import it without
# repeatedly reading environment variables.  Environment variables
# should be set before importing this module.
settings = Settings()
