"""
Key-value accessor used for all persistence.

Every record is stored as one JSON document under a string key such as
``initiative:<id>`` or ``user:<id>``.  There are no secondary indexes;
listing goes through ``get_by_prefix`` which scans all keys sharing a
prefix.  Two backends implement the same contract:

* :class:`SQLiteKeyValueStore` keeps documents in the ``kv_store``
  table of a local SQLite database.
* :class:`SupabaseKeyValueStore` talks to a hosted PostgREST table over
  HTTP using ``requests``.

Get, set and delete are atomic per key.  There are no multi-key
transactions, so concurrent writers to the same key race and the last
write wins.  Backend failures surface as
:class:`~agri_initiatives_api.app.core.errors.UpstreamFailure`.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import requests

from .config import Settings
from .db import get_connection, get_database_path, init_db
from .errors import UpstreamFailure


logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """Abstract key-value store holding JSON documents."""

    @abstractmethod
    def get(self, key: str) -> Optional[Dict[str, Any]]:
        """Return the document stored under ``key`` or ``None``."""

    @abstractmethod
    def set(self, key: str, value: Dict[str, Any]) -> None:
        """Insert or overwrite the document stored under ``key``."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove ``key``.  Deleting a missing key is a no-op."""

    @abstractmethod
    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        """Return all documents whose key starts with ``prefix``."""


def _escape_like(prefix: str) -> str:
    return prefix.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


class SQLiteKeyValueStore(KeyValueStore):
    """Key-value store backed by the ``kv_store`` SQLite table.

    A new connection is opened for each operation and closed before
    returning, so one instance can be shared by concurrent requests.
    """

    def __init__(self, database_path: str) -> None:
        self.database_path = database_path

    def initialize(self) -> None:
        init_db(self.database_path)

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        conn = get_connection(self.database_path)
        try:
            row = conn.execute("SELECT value FROM kv_store WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Key-value read failed: {e}") from e
        finally:
            conn.close()
        if row is None:
            return None
        return json.loads(row["value"])

    def set(self, key: str, value: Dict[str, Any]) -> None:
        conn = get_connection(self.database_path)
        try:
            conn.execute(
                "INSERT INTO kv_store (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, json.dumps(value, ensure_ascii=False)),
            )
            conn.commit()
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Key-value write failed: {e}") from e
        finally:
            conn.close()

    def delete(self, key: str) -> None:
        conn = get_connection(self.database_path)
        try:
            conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
            conn.commit()
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Key-value delete failed: {e}") from e
        finally:
            conn.close()

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        conn = get_connection(self.database_path)
        try:
            rows = conn.execute(
                "SELECT value FROM kv_store WHERE key LIKE ? ESCAPE '\\' ORDER BY rowid",
                (_escape_like(prefix) + "%",),
            ).fetchall()
        except sqlite3.Error as e:
            raise UpstreamFailure(f"Key-value scan failed: {e}") from e
        finally:
            conn.close()
        return [json.loads(row["value"]) for row in rows]


class SupabaseKeyValueStore(KeyValueStore):
    """Key-value store backed by a hosted PostgREST table.

    The table must have a text ``key`` primary key and a JSON ``value``
    column.  Requests authenticate with the service role key, so this
    store must only ever run server side.
    """

    def __init__(
        self,
        *,
        base_url: str,
        service_role_key: str,
        table: str = "kv_store",
        timeout: float = 15,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.url = f"{base_url.rstrip('/')}/rest/v1/{table}"
        self.timeout = timeout
        self.session = session or requests.Session()
        self.headers = {
            "apikey": service_role_key,
            "Authorization": f"Bearer {service_role_key}",
            "Content-Type": "application/json",
        }

    def _request(self, method: str, *, params: Dict[str, str] | None = None,
                 json_body: Any | None = None, headers: Dict[str, str] | None = None) -> Any:
        all_headers = dict(self.headers)
        if headers:
            all_headers.update(headers)
        try:
            logger.debug("Sending %s request to %s", method, self.url)
            response = self.session.request(
                method=method,
                url=self.url,
                params=params,
                json=json_body,
                headers=all_headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.error("Key-value request failed: %s", exc)
            raise UpstreamFailure(f"Key-value request failed: {exc}") from exc
        if response.content:
            return response.json()
        return None

    def get(self, key: str) -> Optional[Dict[str, Any]]:
        rows = self._request("GET", params={"select": "value", "key": f"eq.{key}"})
        if not rows:
            return None
        return rows[0]["value"]

    def set(self, key: str, value: Dict[str, Any]) -> None:
        self._request(
            "POST",
            json_body={"key": key, "value": value},
            headers={"Prefer": "resolution=merge-duplicates"},
        )

    def delete(self, key: str) -> None:
        self._request("DELETE", params={"key": f"eq.{key}"})

    def get_by_prefix(self, prefix: str) -> List[Dict[str, Any]]:
        rows = self._request("GET", params={"select": "key,value", "key": f"like.{prefix}*"})
        return [row["value"] for row in rows or []]


def build_kv_store(settings: Settings) -> KeyValueStore:
    """Construct the store selected by ``settings.kv_backend``.

    The SQLite store has its migrations applied before it is returned.
    """
    backend = settings.kv_backend.lower()
    if backend == "sqlite":
        store = SQLiteKeyValueStore(get_database_path(settings.database_url))
        store.initialize()
        return store
    if backend == "supabase":
        if not settings.supabase_url or not settings.supabase_service_role_key:
            raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY are required for KV_BACKEND=supabase")
        return SupabaseKeyValueStore(
            base_url=settings.supabase_url,
            service_role_key=settings.supabase_service_role_key,
            table=settings.supabase_kv_table,
            timeout=settings.http_timeout,
        )
    raise RuntimeError(f"Unknown KV_BACKEND: {settings.kv_backend}")
