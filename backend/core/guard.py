"""
Authorization guard: turns a presented token into an Identity, enforces roles,
and narrows record sets to what an identity may see.

Per request:
    no token              -> Unauthorized
    bad / expired token   -> Forbidden
    authenticated(role)   -> role check -> authorized | Forbidden
Nothing is retried and nothing is remembered between requests.
"""

from collections.abc import Callable, Iterable
from datetime import datetime
from functools import lru_cache
from typing import Any, TypeVar

from .errors import Forbidden, InvalidCredentials, TokenError, TokenExpired, Unauthorized
from .models import Identity, User
from .passwords import hash_password, verify_password
from .store import CredentialStore
from .tokens import issue_token, verify_token

T = TypeVar("T")


@lru_cache(maxsize=1)
def _dummy_hash() -> str:
    """Hash checked when the username is unknown, so both login failures cost the same."""
    return hash_password("not-a-real-password")


def authenticate(token: str | None, now: datetime | None = None) -> Identity:
    if not token:
        raise Unauthorized("Unauthorized")
    try:
        claims = verify_token(token, now=now)
    except TokenExpired:
        raise Forbidden("Session expired")
    except TokenError:
        raise Forbidden("Forbidden")
    return claims.identity


def require_admin(identity: Identity) -> Identity:
    if not identity.is_admin:
        raise Forbidden("Admin access required")
    return identity


def scope_query(
    identity: Identity,
    records: Iterable[T],
    owns: Callable[[T, str | None], bool],
) -> list[T]:
    """All records for an admin; otherwise only those `owns(record, identity.player_id)` accepts, order kept."""
    if identity.is_admin:
        return list(records)
    return [r for r in records if owns(r, identity.player_id)]


def can_see(identity: Identity, record: Any, owns: Callable[[Any, str | None], bool]) -> bool:
    return identity.is_admin or owns(record, identity.player_id)


def login(
    users: CredentialStore,
    username: str,
    password: str,
    now: datetime | None = None,
) -> tuple[str, User]:
    """Check credentials and issue a session token. Unknown user and wrong password fail identically."""
    user = users.find_by_username((username or "").strip())
    if user is None:
        verify_password(password or "", _dummy_hash())
        raise InvalidCredentials()
    if not verify_password(password or "", user.password_hash):
        raise InvalidCredentials()
    return issue_token(user.identity(), now=now), user


def resolve(users: CredentialStore, identity: Identity) -> User:
    """Re-read the identity's user; tokens for deleted users or changed links are refused."""
    user = users.get(identity.user_id)
    if user is None or user.identity() != identity:
        raise Forbidden("Forbidden")
    return user
