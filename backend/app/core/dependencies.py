"""
Authentication dependencies for FastAPI.

This module provides dependencies for protecting routes with bearer tokens
issued by the identity provider.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from backend.app.core.jwt import decode_access_token

# HTTP Bearer security scheme
security = HTTPBearer()


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> dict:
    """
    FastAPI dependency for token authentication.

    Identity lives with the external provider, so there is no local user
    table to consult; a valid signature and a role claim are sufficient.

    Returns:
        Normalized claims: sub, user_id, role, name

    Raises:
        HTTPException: 401 if the token is invalid, 403 if it carries no role
    """
    payload = decode_access_token(credentials.credentials)
    if payload is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    if not payload.get("role"):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Role information missing from token"
        )

    return payload
