"""
Session tokens: signed JWTs carrying user id, role and linked player id.
Stateless: nothing is stored server-side, so verification depends only on
(token, current time, secret).
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt
from jose.utils import base64url_decode, base64url_encode

from backend.config import JWT_ALGORITHM, JWT_SECRET, TOKEN_EXPIRE_DAYS
from .errors import TokenExpired, TokenMalformed
from .models import Identity, Role

TOKEN_TTL = timedelta(days=TOKEN_EXPIRE_DAYS)


@dataclass(frozen=True)
class Claims:
    """Decoded token payload."""
    user_id: str
    role: Role
    player_id: str | None
    issued_at: int
    expires_at: int

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.user_id, role=self.role, player_id=self.player_id)


def _now(now: datetime | None) -> datetime:
    return now or datetime.now(timezone.utc)


def _timestamp(now: datetime | None) -> int:
    return int(_now(now).timestamp())


def issue_token(
    identity: Identity,
    now: datetime | None = None,
    secret: str = JWT_SECRET,
    ttl: timedelta = TOKEN_TTL,
) -> str:
    issued_at = _timestamp(now)
    payload = {
        "sub": identity.user_id,
        "role": identity.role.value,
        "iat": issued_at,
        "exp": issued_at + int(ttl.total_seconds()),
    }
    if identity.player_id is not None:
        payload["player_id"] = identity.player_id
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _is_canonical(token: str) -> bool:
    """Each segment must be the exact base64url encoding of its bytes.
    Base64 ignores the spare low bits of the last character, so without this a
    flipped trailing bit would still decode to the same signature."""
    segments = token.split(".")
    if len(segments) != 3:
        return False
    try:
        for segment in segments:
            raw = segment.encode("ascii")
            if base64url_encode(base64url_decode(raw)) != raw:
                return False
    except (ValueError, TypeError):
        return False
    return True


def _claims_from_payload(payload: dict) -> Claims:
    user_id = payload.get("sub")
    if not isinstance(user_id, str) or not user_id:
        raise TokenMalformed("Token has no subject")
    try:
        role = Role(payload.get("role"))
    except ValueError:
        raise TokenMalformed("Token has an unknown role")
    player_id = payload.get("player_id")
    if role is Role.PLAYER and (not isinstance(player_id, str) or not player_id):
        raise TokenMalformed("Player token has no player id")
    if role is Role.ADMIN and player_id is not None:
        raise TokenMalformed("Admin token carries a player id")
    issued_at, expires_at = payload.get("iat"), payload.get("exp")
    if not isinstance(issued_at, int) or not isinstance(expires_at, int):
        raise TokenMalformed("Token timestamps missing")
    return Claims(user_id, role, player_id, issued_at, expires_at)


def verify_token(token: str, now: datetime | None = None, secret: str = JWT_SECRET) -> Claims:
    """Decode and check a token. Raises TokenMalformed or TokenExpired."""
    if not isinstance(token, str) or not _is_canonical(token):
        raise TokenMalformed("Token is not well formed")
    try:
        # Expiry is checked below against `now` so verification stays a pure function of its inputs
        payload = jwt.decode(
            token,
            secret,
            algorithms=[JWT_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError:
        raise TokenMalformed("Token signature is invalid")
    if not isinstance(payload, dict):
        raise TokenMalformed("Token payload is not an object")
    claims = _claims_from_payload(payload)
    # Compared at full precision; exp itself is whole seconds
    if _now(now).timestamp() > claims.expires_at:
        raise TokenExpired("Token has expired")
    return claims
