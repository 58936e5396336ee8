"""
Password hashing.
Bcrypt accepts at most 72 bytes; we truncate manually (password.encode("utf-8")[:72]) before hashing.
We use bcrypt directly so the truncated bytes are passed through with no extra encoding.
"""

import bcrypt

from backend.config import BCRYPT_ROUNDS

BCRYPT_MAX_BYTES = 72


def _truncate_password(password: str) -> bytes:
    return password.encode("utf-8")[:BCRYPT_MAX_BYTES]


def hash_password(password: str, rounds: int = BCRYPT_ROUNDS) -> str:
    pwd_bytes = _truncate_password(password)
    return bcrypt.hashpw(pwd_bytes, bcrypt.gensalt(rounds=rounds)).decode("ascii")


def verify_password(plain: str, hashed: str) -> bool:
    """True if `plain` reproduces `hashed`. Malformed hashes give False, never an exception."""
    try:
        return bcrypt.checkpw(_truncate_password(plain), hashed.encode("ascii"))
    except (ValueError, TypeError, AttributeError):
        return False
