"""
Security helpers for password hashing and JWT authentication.

Tokens are HMAC-SHA256 signed JSON Web Tokens built from base64url
encoded parts.  Two token kinds exist: short-lived access tokens
signed with ``settings.secret_key`` and long-lived refresh tokens
signed with ``settings.refresh_secret_key``.  Both embed the user id
(``sub``), email, role, the token ``type`` and an ``exp`` timestamp.

Passwords are hashed with PBKDF2-HMAC-SHA256 and stored as
``salthex$hashhex``.
"""

import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Callable, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings
from .db import get_connection

PBKDF2_ITERATIONS = 100_000


def _b64_url_encode(data: bytes) -> str:
    """Base64-url encode bytes without padding."""
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def _b64_url_decode(data: str) -> bytes:
    """Decode base64-url encoded string, adding padding if necessary."""
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding)


def _sign(message: bytes, secret: str) -> bytes:
    """Compute HMAC-SHA256 signature of a message using the given secret."""
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).digest()


def _encode(claims: Dict[str, Any], secret: str, lifetime_seconds: int) -> str:
    to_encode = claims.copy()
    # jti keeps two tokens issued within the same second distinct.
    to_encode.setdefault("jti", os.urandom(8).hex())
    to_encode["exp"] = int(time.time()) + lifetime_seconds
    header = {"alg": settings.algorithm, "typ": "JWT"}
    header_b64 = _b64_url_encode(json.dumps(header, separators=(",", ":")).encode("utf-8"))
    payload_b64 = _b64_url_encode(json.dumps(to_encode, separators=(",", ":")).encode("utf-8"))
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    signature_b64 = _b64_url_encode(_sign(signing_input, secret))
    return f"{header_b64}.{payload_b64}.{signature_b64}"


def _decode(token: str, secret: str, expected_type: str) -> Optional[Dict[str, Any]]:
    try:
        header_b64, payload_b64, signature_b64 = token.split(".")
    except ValueError:
        return None
    signing_input = f"{header_b64}.{payload_b64}".encode("utf-8")
    try:
        actual_sig = _b64_url_decode(signature_b64)
        if not hmac.compare_digest(_sign(signing_input, secret), actual_sig):
            return None
        data = json.loads(_b64_url_decode(payload_b64).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict) or data.get("type") != expected_type:
        return None
    if data.get("exp") is None or int(data["exp"]) < int(time.time()):
        return None
    return data


def _claims_for(user: Dict[str, Any]) -> Dict[str, Any]:
    return {"sub": str(user["id"]), "email": user["email"], "role": user["role"]}


def create_access_token(user: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed access token for a user record.

    Parameters
    ----------
    user : dict
        Mapping with at least ``id``, ``email`` and ``role``.
    expires_delta : Optional[int]
        Lifetime of the token in seconds.  Defaults to
        ``settings.access_token_expire_minutes * 60``.

    Returns
    -------
    str
        A token of the form ``header.payload.signature``.
    """
    claims = _claims_for(user)
    claims["type"] = "access"
    lifetime = expires_delta or settings.access_token_expire_minutes * 60
    return _encode(claims, settings.secret_key, lifetime)


def create_refresh_token(user: Dict[str, Any], expires_delta: Optional[int] = None) -> str:
    """Create a signed refresh token (default lifetime in days from settings)."""
    claims = _claims_for(user)
    claims["type"] = "refresh"
    lifetime = expires_delta or settings.refresh_token_expire_days * 24 * 60 * 60
    return _encode(claims, settings.refresh_secret_key, lifetime)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify an access token and return its payload, or ``None`` if invalid or expired."""
    return _decode(token, settings.secret_key, "access")


def decode_refresh_token(token: str) -> Optional[Dict[str, Any]]:
    """Verify a refresh token and return its payload, or ``None`` if invalid or expired."""
    return _decode(token, settings.refresh_secret_key, "refresh")


security = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_user(credentials: HTTPAuthorizationCredentials = Depends(security)) -> Dict[str, Any]:
    """Dependency that resolves the authenticated user.

    The bearer token is verified, then the subject is looked up in
    the ``users`` table so that deleted or deactivated accounts lose
    access immediately and role changes take effect without a new
    login.  Returns a dict with ``user_id``, ``email`` and ``role``.
    """
    if credentials is None:
        raise _unauthorized("Not authenticated")
    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise _unauthorized("Invalid or expired token")

    conn = get_connection()
    try:
        user_row = conn.execute(
            "SELECT id, email, role, is_active FROM users WHERE id = ?",
            (int(payload["sub"]),),
        ).fetchone()
    finally:
        conn.close()
    if not user_row:
        raise _unauthorized("User no longer exists")
    if not user_row["is_active"]:
        raise _unauthorized("User account disabled")
    return {
        "user_id": user_row["id"],
        "email": user_row["email"],
        "role": user_row["role"],
    }


def require_roles(*roles: str) -> Callable[[Dict[str, Any]], Dict[str, Any]]:
    """Dependency factory that restricts a route to the given roles.

    Use as ``Depends(require_roles("admin", "city_planner"))``.  If
    the authenticated user's role is not listed, HTTP 403 is raised.

    Parameters
    ----------
    *roles : str
        Role names permitted to access the endpoint.

    Returns
    -------
    Callable
        A dependency returning the current user on success.
    """

    def _role_dependency(current_user: Dict[str, Any] = Depends(get_current_user)) -> Dict[str, Any]:
        if current_user.get("role") not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient permissions",
            )
        return current_user

    return _role_dependency


def hash_password(password: str) -> str:
    """Hash a password using PBKDF2-HMAC with SHA-256.

    A 16-byte random salt is generated for each password.  The result
    contains the salt and hash in hex, separated by ``$``.
    """
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"{salt.hex()}${dk.hex()}"


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against a stored ``salt$hash`` string."""
    try:
        salt_hex, hash_hex = hashed_password.split("$", 1)
        salt = bytes.fromhex(salt_hex)
        stored_hash = bytes.fromhex(hash_hex)
    except ValueError:
        return False
    dk = hashlib.pbkdf2_hmac("sha256", plain_password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(dk, stored_hash)
