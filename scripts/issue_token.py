#!/usr/bin/env python3
"""
Mint a session token for manual API testing (curl, HTTP clients).
Usage: python scripts/issue_token.py <user_id> <admin|player> [player_id]
Uses JWT_SECRET from the environment, so the token only works against a server sharing that secret.
"""
import sys
import os

# Allow running from repo root or scripts/
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from backend.core.models import Identity, Role
from backend.core.tokens import issue_token


def main() -> None:
    if len(sys.argv) < 3:
        print("Usage: python scripts/issue_token.py <user_id> <admin|player> [player_id]", file=sys.stderr)
        sys.exit(1)
    user_id = sys.argv[1].strip()
    try:
        role = Role(sys.argv[2].strip().lower())
    except ValueError:
        print(f"Error: role must be 'admin' or 'player', got {sys.argv[2]!r}", file=sys.stderr)
        sys.exit(1)
    player_id = sys.argv[3].strip() if len(sys.argv) > 3 else None
    if role is Role.PLAYER and not player_id:
        print("Error: a player token needs a player_id.", file=sys.stderr)
        sys.exit(1)
    if role is Role.ADMIN:
        player_id = None

    token = issue_token(Identity(user_id=user_id, role=role, player_id=player_id))
    print(token)


if __name__ == "__main__":
    main()
