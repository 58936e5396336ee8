"""
Auth dependencies for FastAPI routes.
The session token comes from the `token` cookie, or from an Authorization: Bearer header for API clients.
"""

from fastapi import Depends, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from backend.config import COOKIE_SECURE, TOKEN_COOKIE_NAME, TOKEN_EXPIRE_DAYS
from backend.core import guard
from backend.core.models import Identity
from backend.core.store import EntityStore

from .database import get_store

security = HTTPBearer(auto_error=False)


def get_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    token = request.cookies.get(TOKEN_COOKIE_NAME)
    if token:
        return token
    if credentials and (credentials.scheme or "").lower() == "bearer":
        return credentials.credentials
    return None


def get_current_identity(
    token: str | None = Depends(get_token),
    store: EntityStore = Depends(get_store),
) -> Identity:
    """401 without a token, 403 for a bad/expired token or one whose user no longer exists."""
    identity = guard.authenticate(token)
    guard.resolve(store.users, identity)
    return identity


def require_admin(identity: Identity = Depends(get_current_identity)) -> Identity:
    return guard.require_admin(identity)


def set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        key=TOKEN_COOKIE_NAME,
        value=token,
        max_age=TOKEN_EXPIRE_DAYS * 24 * 3600,
        httponly=True,
        samesite="lax",
        secure=COOKIE_SECURE,
    )


def clear_token_cookie(response: Response) -> None:
    response.delete_cookie(key=TOKEN_COOKIE_NAME, httponly=True, samesite="lax", secure=COOKIE_SECURE)
