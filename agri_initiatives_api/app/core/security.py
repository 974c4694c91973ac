"""
Security helpers for password hashing, JWT tokens and the
authentication gate.

Tokens issued by the local auth provider are JSON Web Tokens signed
with HMAC‑SHA256 and base64url encoding.  Tokens embed arbitrary
claims and an expiration timestamp (``exp``).  Passwords are hashed
with PBKDF2‑HMAC‑SHA256 and a random salt.

``authenticate`` is the gate every mutating route passes through: it
extracts the bearer token from the ``Authorization`` header and asks the
configured auth provider who it belongs to.  The answer is never
cached; each request round-trips to the provider.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import TYPE_CHECKING, Any, Dict, Optional

from .errors import AuthProviderError, UnauthorizedError

if TYPE_CHECKING:
    from ..schemas.user import CallerIdentity
    from .auth_provider import AuthProvider


PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64‑url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64‑url encoded string, adding padding if necessary."""
    padding = '=' * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC‑SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def create_access_token(data: Dict[str, Any], secret_key: str, expires_in: int) -> str:
    """Create a signed JWT token with the given payload.

    The payload is extended with an ``exp`` field holding the
    expiration time as a UNIX timestamp.  The token is a string of the
    form ``header.payload.signature`` where each part is base64url
    encoded.

    Parameters
    ----------
    data : dict
        Claims to embed in the token (e.g. ``{"sub": "<user id>"}``).
    secret_key : str
        HMAC secret used to sign the token.
    expires_in : int
        Lifetime of the token in seconds.

    Returns
    -------
    str
        A signed JWT token.
    """
    to_encode = data.copy()
    to_encode["exp"] = int(time.time()) + expires_in
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(',', ':')).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(',', ':')).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, secret_key))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def decode_access_token(token: str, secret_key: str) -> Optional[Dict[str, Any]]:
    """Verify and decode a JWT token.

    Verifies the HMAC signature and the ``exp`` claim.  Returns the
    payload dictionary when both are valid, otherwise ``None``.
    """
    parts = token.split('.')
    if len(parts) != 3:
        return None
    header_b64, payload_b64, signature_b64 = parts
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    expected_sig = _sign(signing_input, secret_key)
    try:
        actual_sig = _b64_url_decode(signature_b64)
    except ValueError:
        return None
    # Constant‑time comparison to prevent timing attacks
    if not hmac.compare_digest(expected_sig, actual_sig):
        return None
    try:
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    exp = data.get("exp")
    if not isinstance(exp, (int, float)) or int(exp) < int(time.time()):
        return None
    return data


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2‑HMAC with SHA‑256.

    A 16‑byte random salt is generated for each password.  The result
    is ``"<salt hex>$<hash hex>"``.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac('sha256', password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored ``salt$hash`` string."""
    try:
        salt_hex, hash_hex = hashed_password.split('$', 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac('sha256', plain_password.encode('utf-8'), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the token from an ``Authorization: Bearer <token>`` header.

    Raises ``UnauthorizedError`` when the header is absent, uses another
    scheme or carries an empty token.
    """
    if not authorization or not authorization.strip():
        raise UnauthorizedError("Unauthorized - No token provided")
    parts = authorization.strip().split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Unauthorized - Malformed authorization header")
    return parts[1]


def authenticate(authorization: Optional[str], provider: "AuthProvider") -> "CallerIdentity":
    """Resolve the caller behind a bearer token.

    Provider rejections become ``UnauthorizedError``; transport failures
    (``UpstreamFailure``) propagate unchanged.
    """
    token = extract_bearer_token(authorization)
    try:
        return provider.get_user(token)
    except AuthProviderError as e:
        raise UnauthorizedError("Unauthorized - Invalid token") from e


def check_public_key(authorization: Optional[str], public_key: str) -> None:
    """Require ``Bearer <public_key>`` when a public key is configured."""
    if not public_key:
        return
    token = extract_bearer_token(authorization)
    if not hmac.compare_digest(token.encode("utf-8"), public_key.encode("utf-8")):
        raise UnauthorizedError("Unauthorized - Invalid public key")
