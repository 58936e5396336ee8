"""
In-memory relational store for the portal.
One EntityStore owns every collection and a single lock; all reads and writes
go through it, and compound operations (player + user) hold the lock across
both collections so no partial state is ever observable.
Data lives for the lifetime of the process only.
"""

import logging
import uuid
from collections.abc import Callable, Iterable
from threading import RLock
from typing import Any

from .errors import Conflict, NotFound, ValidationError
from .models import (
    Attendance,
    AttendanceStatus,
    Event,
    Match,
    Player,
    Record,
    Role,
    Tournament,
    User,
    belongs_to_player,
    includes_player,
    is_player,
)
from .passwords import hash_password

logger = logging.getLogger(__name__)

OwnershipPredicate = Callable[[Any, str | None], bool]


def new_id(kind: str) -> str:
    return f"{kind}-{uuid.uuid4()}"


class CredentialStore:
    """User records, looked up by id or by (unique) username."""

    def __init__(self, lock: RLock):
        self._lock = lock
        self._users: dict[str, User] = {}

    def all(self) -> list[User]:
        with self._lock:
            return list(self._users.values())

    def get(self, user_id: str) -> User | None:
        with self._lock:
            return self._users.get(user_id)

    def find_by_username(self, username: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.username == username:
                    return user
            return None

    def find_by_player_id(self, player_id: str) -> list[User]:
        with self._lock:
            return [u for u in self._users.values() if u.player_id == player_id]

    def create(self, user: User) -> User:
        with self._lock:
            if self.find_by_username(user.username) is not None:
                raise Conflict("Username already taken")
            if user.id in self._users:
                raise Conflict(f"User {user.id} already exists")
            self._users[user.id] = user
            return user

    def delete(self, user_id: str) -> None:
        with self._lock:
            self._users.pop(user_id, None)

    def clear(self) -> None:
        with self._lock:
            self._users.clear()


class Collection:
    """Records of one type keyed by id, kept in insertion order."""

    def __init__(self, kind: str, record_cls: type, lock: RLock, owns: OwnershipPredicate):
        self.kind = kind
        self.record_cls = record_cls
        self.owns = owns
        self._lock = lock
        self._records: dict[str, Record] = {}

    def new_id(self) -> str:
        return new_id(self.kind)

    def build(self, record_id: str, fields: dict[str, Any]) -> Record:
        """Construct a record without storing it. Bad field sets raise ValidationError."""
        if "id" in fields:
            raise ValidationError("Field(s) cannot be set: id")
        try:
            return self.record_cls(id=record_id, **self.record_cls.normalized(fields))
        except (TypeError, ValueError) as e:
            raise ValidationError(f"Invalid {self.kind}: {e}")

    def insert(self, record: Record) -> Record:
        with self._lock:
            if record.id in self._records:
                raise Conflict(f"{self.kind.capitalize()} {record.id} already exists")
            self._records[record.id] = record
            return record

    def create(self, **fields: Any) -> Record:
        return self.insert(self.build(self.new_id(), fields))

    def all(self) -> list[Record]:
        with self._lock:
            return list(self._records.values())

    def get(self, record_id: str) -> Record | None:
        with self._lock:
            return self._records.get(record_id)

    def for_player(self, player_id: str) -> list[Record]:
        with self._lock:
            return [r for r in self._records.values() if self.owns(r, player_id)]

    def update(self, record_id: str, changes: dict[str, Any]) -> Record:
        with self._lock:
            current = self._records.get(record_id)
            if current is None:
                raise NotFound(f"{self.kind.capitalize()} not found")
            try:
                updated = current.merged(changes)
            except (ValueError, TypeError) as e:
                raise ValidationError(str(e))
            self._records[record_id] = updated
            return updated

    def delete(self, record_id: str) -> bool:
        """Remove a record. Absent ids are a no-op; returns whether anything was removed."""
        with self._lock:
            return self._records.pop(record_id, None) is not None

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def clear(self) -> None:
        with self._lock:
            self._records.clear()


class EntityStore:
    """Owner of all portal collections."""

    def __init__(self):
        self._lock = RLock()
        self.users = CredentialStore(self._lock)
        self.players = Collection("player", Player, self._lock, is_player)
        self.matches = Collection("match", Match, self._lock, includes_player)
        self.tournaments = Collection("tournament", Tournament, self._lock, includes_player)
        self.events = Collection("event", Event, self._lock, includes_player)
        self.attendance = Collection("attendance", Attendance, self._lock, belongs_to_player)

    # ----- Referential checks -----

    def _check_player_refs(self, fields: dict[str, Any]) -> None:
        """Player ids referenced by a match/tournament/event/attendance must exist."""
        refs: list[str] = list(fields.get("player_ids") or ())
        if fields.get("player_id") is not None:
            refs.append(fields["player_id"])
        missing = [pid for pid in refs if self.players.get(pid) is None]
        if missing:
            raise ValidationError(f"Unknown player id(s): {', '.join(missing)}")

    def create_linked(self, collection: Collection, fields: dict[str, Any]) -> Record:
        """Create a match/tournament/event/attendance record after checking its player references."""
        with self._lock:
            self._check_player_refs(fields)
            return collection.create(**fields)

    def update_linked(self, collection: Collection, record_id: str, changes: dict[str, Any]) -> Record:
        with self._lock:
            if collection.get(record_id) is None:
                raise NotFound(f"{collection.kind.capitalize()} not found")
            self._check_player_refs(changes)
            return collection.update(record_id, changes)

    # ----- Compound player operations -----

    def create_player(self, username: str, password: str, **fields: Any) -> tuple[Player, User]:
        """Create a Player together with its player-role User.
        Raises Conflict (duplicate username) or ValidationError and then stores nothing."""
        username = (username or "").strip()
        if not username:
            raise ValidationError("Username is required")
        if not password:
            raise ValidationError("Password is required")
        # Hash outside the lock; bcrypt is deliberately slow
        password_hash = hash_password(password)
        with self._lock:
            if self.users.find_by_username(username) is not None:
                raise Conflict("Username already taken")
            player_id = self.players.new_id()
            user = User(
                id=new_id("user"),
                username=username,
                password_hash=password_hash,
                role=Role.PLAYER,
                player_id=player_id,
            )
            player = self.players.build(player_id, {**fields, "user_id": user.id})
            self.users.create(user)
            self.players.insert(player)
        logger.info("Created player %s with user %s", player.id, username)
        return player, user

    def delete_player(self, player_id: str) -> Player:
        """Delete a Player and its linked User as one operation. Raises NotFound if the player is absent."""
        with self._lock:
            player = self.players.get(player_id)
            if player is None:
                raise NotFound("Player not found")
            user_ids = {u.id for u in self.users.find_by_player_id(player_id)}
            if self.users.get(player.user_id) is not None:
                user_ids.add(player.user_id)
            if not user_ids:
                logger.warning("Player %s has no linked user (expected %s); deleting player anyway",
                               player_id, player.user_id)
            for user_id in user_ids:
                self.users.delete(user_id)
            self.players.delete(player_id)
        return player

    # ----- Provisioning / admin -----

    def seed_admin(self, username: str, password: str) -> User:
        """Provision the admin account. Returns the existing user if the username is taken."""
        existing = self.users.find_by_username(username)
        if existing is not None:
            return existing
        user = User(
            id=new_id("user"),
            username=username,
            password_hash=hash_password(password),
            role=Role.ADMIN,
        )
        try:
            self.users.create(user)
        except Conflict:
            return self.users.find_by_username(username)
        logger.info("Seeded admin user %r", username)
        return user

    def overview(self) -> dict[str, int]:
        with self._lock:
            return {
                "players": len(self.players),
                "users": len(self.users.all()),
                "matches": len(self.matches),
                "tournaments": len(self.tournaments),
                "events": len(self.events),
                "attendance": len(self.attendance),
            }

    def reset(self) -> None:
        with self._lock:
            self.users.clear()
            for c in (self.players, self.matches, self.tournaments, self.events, self.attendance):
                c.clear()


def attendance_summary(records: Iterable[Attendance]) -> dict[str, Any]:
    """Present / absent / late counts and the share of sessions attended (present or late)."""
    counts = {s.value: 0 for s in AttendanceStatus}
    total = 0
    for record in records:
        counts[AttendanceStatus(record.status).value] += 1
        total += 1
    attended = counts[AttendanceStatus.PRESENT.value] + counts[AttendanceStatus.LATE.value]
    return {
        "total": total,
        **counts,
        "attendance_rate": round(attended / total, 4) if total else 0.0,
    }
