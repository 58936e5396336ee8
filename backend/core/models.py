"""
Portal records: users, players, and the player-linked collections.
Records are immutable; updates return new copies (see Record.merged).
"""

from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any


class Role(str, Enum):
    ADMIN = "admin"
    PLAYER = "player"


class PlayerStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class TournamentStatus(str, Enum):
    UPCOMING = "upcoming"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class EventType(str, Enum):
    TRAINING = "training"
    MEETING = "meeting"
    SOCIAL = "social"
    OTHER = "other"


class AttendanceStatus(str, Enum):
    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _plain(value: Any) -> Any:
    """JSON-friendly form of a field value (enums to their value, tuples to lists)."""
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_plain(v) for v in value]
    return value


@dataclass(frozen=True)
class Identity:
    """Who is making a request, as resolved from a verified session token."""
    user_id: str
    role: Role
    player_id: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


class Record:
    """Mixin for stored records. Subclasses are frozen dataclasses with an `id` field."""

    # Fields that update() may never change
    IMMUTABLE_FIELDS: tuple[str, ...] = ("id",)

    # Enum-typed fields, coerced from their string values on create and update
    ENUM_FIELDS: dict[str, type[Enum]] = {}

    @classmethod
    def normalized(cls, values: dict[str, Any]) -> dict[str, Any]:
        """Coerce enum fields and player_ids to their stored types. Bad enum values raise ValueError."""
        out = dict(values)
        for name, enum_cls in cls.ENUM_FIELDS.items():
            if name in out:
                try:
                    out[name] = enum_cls(out[name])
                except ValueError:
                    allowed = ", ".join(m.value for m in enum_cls)
                    raise ValueError(f"Invalid {name} {out[name]!r} (expected one of: {allowed})")
        if "player_ids" in out:
            out["player_ids"] = tuple(out["player_ids"] or ())
        return out

    def to_dict(self) -> dict[str, Any]:
        return {f.name: _plain(getattr(self, f.name)) for f in fields(self)}

    def merged(self, changes: dict[str, Any]) -> "Record":
        """Return a copy with `changes` applied. Unknown or immutable fields raise ValueError."""
        names = {f.name for f in fields(self)}
        unknown = sorted(k for k in changes if k not in names)
        if unknown:
            raise ValueError(f"Unknown field(s): {', '.join(unknown)}")
        frozen = sorted(k for k in changes if k in self.IMMUTABLE_FIELDS)
        if frozen:
            raise ValueError(f"Field(s) cannot be changed: {', '.join(frozen)}")
        return replace(self, **self.normalized(changes))


@dataclass(frozen=True)
class User(Record):
    id: str
    username: str
    password_hash: str
    role: Role
    player_id: str | None = None  # set iff role is PLAYER
    created_at: str = field(default_factory=utc_now_iso)

    IMMUTABLE_FIELDS = ("id", "role", "player_id")

    def to_dict(self) -> dict[str, Any]:
        """Public view; the password hash never leaves the store."""
        out = super().to_dict()
        out.pop("password_hash", None)
        return out

    def identity(self) -> Identity:
        return Identity(user_id=self.id, role=self.role, player_id=self.player_id)


@dataclass(frozen=True)
class Player(Record):
    id: str
    name: str
    user_id: str
    email: str = ""
    phone: str = ""
    position: str = ""
    jersey_number: str = ""
    date_of_birth: str = ""
    joined_date: str = field(default_factory=utc_now_iso)
    status: PlayerStatus = PlayerStatus.ACTIVE

    IMMUTABLE_FIELDS = ("id", "user_id")
    ENUM_FIELDS = {"status": PlayerStatus}


@dataclass(frozen=True)
class Match(Record):
    id: str
    title: str
    opponent: str = ""
    date: str = ""
    time: str = ""
    location: str = ""
    result: str | None = None
    score: str | None = None
    player_ids: tuple[str, ...] = ()


@dataclass(frozen=True)
class Tournament(Record):
    id: str
    name: str
    start_date: str = ""
    end_date: str = ""
    location: str = ""
    description: str = ""
    status: TournamentStatus = TournamentStatus.UPCOMING
    player_ids: tuple[str, ...] = ()

    ENUM_FIELDS = {"status": TournamentStatus}


@dataclass(frozen=True)
class Event(Record):
    id: str
    title: str
    description: str = ""
    date: str = ""
    time: str = ""
    location: str = ""
    type: EventType = EventType.TRAINING
    player_ids: tuple[str, ...] = ()

    ENUM_FIELDS = {"type": EventType}


@dataclass(frozen=True)
class Attendance(Record):
    id: str
    player_id: str
    date: str
    status: AttendanceStatus
    notes: str | None = None

    ENUM_FIELDS = {"status": AttendanceStatus}


# ===== Ownership predicates =====

def includes_player(record: Any, player_id: str | None) -> bool:
    """Match / Tournament / Event membership."""
    return player_id is not None and player_id in record.player_ids


def belongs_to_player(record: Any, player_id: str | None) -> bool:
    """Attendance ownership."""
    return player_id is not None and record.player_id == player_id


def is_player(record: Any, player_id: str | None) -> bool:
    """A player's own profile."""
    return player_id is not None and record.id == player_id
