"""Agricultural initiatives API client.

This module defines a small client wrapper around the initiatives REST
API.  It covers what the web dashboard does over ``fetch``: sign-up
and sign-in, browsing and filtering initiatives, adding, editing and
deleting them, and loading the dashboard statistics.  The client uses
the ``requests`` library internally to make HTTP calls.

Every operation returns a tuple ``(data, error)``.  On success ``error``
is ``None``; on failure ``data`` is empty and ``error`` is a dictionary
with keys ``status_code`` and ``message`` (the server's ``error``
string when it sent one).

Example::

    api = InitiativesAPI(base_url="http://localhost:8000/api/v1")
    session, error = api.login("farmer@example.com", "secret")
    initiatives, error = api.list_initiatives()
    visible = filter_initiatives(initiatives, search="ري", status="active")
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests


logger = logging.getLogger(__name__)

# Wildcard used by the dashboard's category and status selectors.
ALL = "all"

Error = Optional[Dict[str, Any]]


def filter_initiatives(
    initiatives: List[Dict[str, Any]],
    search: str = "",
    category: str = ALL,
    status: str = ALL,
) -> List[Dict[str, Any]]:
    """Filter initiatives the way the dashboard does.

    ``search`` matches case-insensitively against the title and the
    description.  ``category`` and ``status`` must match exactly unless
    they are ``"all"``.  Order is preserved.
    """
    needle = search.strip().lower()
    result = []
    for initiative in initiatives:
        if needle:
            haystack = f"{initiative.get('title', '')}\n{initiative.get('description', '')}".lower()
            if needle not in haystack:
                continue
        if category != ALL and initiative.get("category") != category:
            continue
        if status != ALL and initiative.get("status") != status:
            continue
        result.append(initiative)
    return result


class InitiativesAPI:
    """Client for interacting with the initiatives API."""

    def __init__(
        self,
        *,
        base_url: str,
        access_token: Optional[str] = None,
        public_key: Optional[str] = None,
        session: Optional[requests.Session] = None,
        timeout: float = 15,
    ) -> None:
        """Initialise the API client.

        Args:
            base_url: Base URL including the API prefix, e.g.
                ``https://example.com/api/v1``.
            access_token: Bearer token of a signed-in user.  Set
                automatically by :meth:`login`.
            public_key: Public anon key sent when signing up, if the
                server requires one.
            session: Optional requests session.  If not supplied a
                session will be created automatically.
            timeout: Request timeout in seconds.
        """
        self.base_url = base_url.rstrip("/")
        self.access_token = access_token
        self.public_key = public_key
        self.session = session or requests.Session()
        self.timeout = timeout

    # ------------------------------------------------------------------
    # Low level HTTP helpers
    # ------------------------------------------------------------------
    def _request(
        self, method: str, path: str, *, json_body: Any | None = None,
        token: Optional[str] = None,
    ) -> Tuple[Optional[Any], Error]:
        """Perform an HTTP request to the API.

        Args:
            method: HTTP method (``GET``, ``POST``, ``PUT``, ``DELETE``).
            path: Path relative to :attr:`base_url` (e.g. ``/initiatives``).
            json_body: JSON body to send with the request.
            token: Bearer token for the ``Authorization`` header.
        Returns:
            A tuple ``(data, error)``.
        """
        url = f"{self.base_url}{path}"
        headers: Dict[str, str] = {}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        try:
            logger.debug("Sending %s request to %s", method, url)
            response = self.session.request(
                method=method,
                url=url,
                json=json_body,
                headers=headers,
                timeout=self.timeout,
            )
            response.raise_for_status()
            if response.content:
                return response.json(), None
            return None, None
        except requests.HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else None
            message = ""
            if exc.response is not None:
                try:
                    err_json = exc.response.json()
                    message = err_json.get("error") or err_json.get("detail") or str(err_json)
                except ValueError:
                    message = exc.response.text
            if not message:
                message = str(exc)
            logger.error("API request failed (%s): %s", status, message)
            return None, {"status_code": status, "message": message}
        except requests.RequestException as exc:
            logger.error("API request failed: %s", exc)
            return None, {"status_code": None, "message": str(exc)}

    def _require_token(self) -> Error:
        if not self.access_token:
            return {"status_code": None, "message": "Not signed in"}
        return None

    # ------------------------------------------------------------------
    # Auth operations
    # ------------------------------------------------------------------
    def health(self) -> Tuple[bool, Error]:
        data, error = self._request("GET", "/health")
        if error:
            return False, error
        return bool(data and data.get("status") == "ok"), None

    def sign_up(self, email: str, password: str, name: str) -> Tuple[Optional[Dict[str, Any]], Error]:
        """Register a new account.

        Returns:
            A tuple ``(user, error)`` where ``user`` holds ``id``,
            ``email`` and ``name``.
        """
        data, error = self._request(
            "POST",
            "/signup",
            json_body={"email": email, "password": password, "name": name},
            token=self.public_key,
        )
        if error:
            return None, error
        return data.get("user"), None

    def login(self, email: str, password: str) -> Tuple[Optional[Dict[str, Any]], Error]:
        """Sign in and remember the returned access token."""
        data, error = self._request("POST", "/login", json_body={"email": email, "password": password})
        if error:
            return None, error
        self.access_token = data.get("access_token")
        return data, None

    def logout(self) -> None:
        self.access_token = None

    def me(self) -> Tuple[Optional[Dict[str, Any]], Error]:
        error = self._require_token()
        if error:
            return None, error
        data, error = self._request("GET", "/users/me", token=self.access_token)
        if error:
            return None, error
        return data.get("user"), None

    # ------------------------------------------------------------------
    # Initiative operations
    # ------------------------------------------------------------------
    def list_initiatives(self) -> Tuple[List[Dict[str, Any]], Error]:
        """Retrieve all initiatives, newest first."""
        data, error = self._request("GET", "/initiatives")
        if error:
            return [], error
        return data.get("initiatives", []), None

    def get_initiative(self, initiative_id: str) -> Tuple[Optional[Dict[str, Any]], Error]:
        data, error = self._request("GET", f"/initiatives/{initiative_id}")
        if error:
            return None, error
        return data.get("initiative"), None

    def create_initiative(self, payload: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Error]:
        """Create an initiative.

        Args:
            payload: ``title``, ``description`` and ``category`` plus any
                of ``status``, ``targetArea``, ``beneficiaries``, ``budget``.
        Returns:
            A tuple ``(initiative, error)``.
        """
        error = self._require_token()
        if error:
            return None, error
        data, error = self._request("POST", "/initiatives", json_body=payload, token=self.access_token)
        if error:
            return None, error
        return data.get("initiative"), None

    def update_initiative(self, initiative_id: str, changes: Dict[str, Any]) -> Tuple[Optional[Dict[str, Any]], Error]:
        error = self._require_token()
        if error:
            return None, error
        data, error = self._request(
            "PUT", f"/initiatives/{initiative_id}", json_body=changes, token=self.access_token
        )
        if error:
            return None, error
        return data.get("initiative"), None

    def delete_initiative(self, initiative_id: str) -> Tuple[bool, Error]:
        error = self._require_token()
        if error:
            return False, error
        _, error = self._request("DELETE", f"/initiatives/{initiative_id}", token=self.access_token)
        if error:
            return False, error
        return True, None

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------
    def get_statistics(self) -> Tuple[Optional[Dict[str, Any]], Error]:
        data, error = self._request("GET", "/statistics")
        if error:
            return None, error
        return data.get("stats"), None
