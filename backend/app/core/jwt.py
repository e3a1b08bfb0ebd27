"""
JWT token utilities for authentication.

Tokens are issued by the external identity provider (Clerk session tokens
with a custom ``role`` claim). This module verifies them and normalizes the
claims into the ``{sub, user_id, role, name}`` shape the rest of the app
consumes. ``create_access_token`` mints compatible tokens for tooling and
tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from backend.app.core.config import settings


def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """
    Create a signed token carrying identity claims.

    Args:
        data: Claims to encode (should include: sub, role; user_id defaults to sub)
        expires_delta: Optional custom expiration time

    Example payload:
        {
            "sub": "user_2abcDEF",
            "role": "driver",
            "name": "Jane Driver",
            "exp": 1234567890
        }
    """
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=settings.access_token_expire_minutes))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.secret_key, algorithm=settings.algorithm)


def normalize_claims(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """
    Flatten provider claims into the app's identity dict.

    The role may arrive top-level or inside ``public_metadata`` depending on
    how the session token template is configured.
    """
    subject = payload.get("sub")
    if not subject:
        return None

    metadata = payload.get("public_metadata") or {}
    role = payload.get("role") or metadata.get("role")

    return {
        "sub": subject,
        "user_id": str(payload.get("user_id") or subject),
        "role": role.lower() if isinstance(role, str) else None,
        "name": payload.get("name") or metadata.get("name"),
    }


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a bearer token and return normalized claims, or None if invalid.
    """
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    return normalize_claims(payload)
