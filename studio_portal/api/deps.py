"""
API Dependencies Module

This module provides FastAPI dependency functions for caller identity and storage.
Tokens are issued by the external auth provider; the portal only decodes them. It
accepts both bearer tokens (for API clients) and HTTP-only cookies (for browser
clients).
"""
from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import jwt, JWTError
from pydantic import ValidationError
from sqlmodel import Session

from studio_portal.core.config import settings
from studio_portal.core.errors import Unauthorized
from studio_portal.db.session import get_db
from studio_portal.db.store import PortalStore
from studio_portal.models.user import Caller
from studio_portal.services.access import AccessResolver, require_admin
from fastapi import Request

# Tokens come from the auth provider, so the docs point there for logging in.
# auto_error=False allows us to check cookies as a fallback
reusable_oauth2 = OAuth2PasswordBearer(
    tokenUrl=settings.AUTH_TOKEN_URL,
    auto_error=False  # Don't raise error immediately if Authorization header is missing
)

def get_store(db: Session = Depends(get_db)) -> PortalStore:
    return PortalStore(db)

def get_access_resolver(store: PortalStore = Depends(get_store)) -> AccessResolver:
    return AccessResolver(store)

def get_current_caller(
    request: Request,
    token: Optional[str] = Depends(reusable_oauth2)
) -> Caller:
    """
    Dependency that decodes the identity of the current caller.

    Supports dual authentication methods:
    1. Bearer token in Authorization header (for API clients)
    2. HTTP-only cookie (for browser clients)

    Token claims:
        sub: The caller's email
        role: A UserRole value (defaults to "user")
        name, uid: Optional display name and provider user id
        read_only: Optional override of the read-only default for clients

    Raises:
        HTTPException 401: If no token is provided
        HTTPException 403: If the token is invalid, expired or has invalid claims
    """
    # Try Authorization header first, then fall back to cookie
    if not token:
        token = request.cookies.get("access_token")
        # Cookie format is "Bearer <token>", so we need to extract the token
        if token and token.startswith("Bearer "):
            token = token.replace("Bearer ", "")

    # Require authentication
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    # Decode and validate the JWT token
    try:
        payload = jwt.decode(
            token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
        caller = Caller(
            email=payload.get("sub"),
            role=payload.get("role") or "user",
            name=payload.get("name"),
            user_id=payload.get("uid"),
            read_only=payload.get("read_only"),
        )
    except (JWTError, ValidationError):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Could not validate credentials",
        )
    return caller

def get_current_admin(
    caller: Caller = Depends(get_current_caller),
) -> Caller:
    """
    Dependency that requires the caller to be an administrator (any non-client role).
    """
    return require_admin(caller)

def get_current_client_id(
    caller: Caller = Depends(get_current_caller),
    store: PortalStore = Depends(get_store),
) -> str:
    """
    Dependency resolving a client caller to their Client record id.

    Raises:
        Unauthorized: If the caller is not a client or has no Client record
    """
    if not caller.is_client:
        raise Unauthorized("Only client accounts have assigned tasks")
    client = store.load_client(caller.email)
    if client is None:
        raise Unauthorized("No client record for this account")
    return client.id
