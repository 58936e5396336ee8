"""
FastAPI backend for the team portal.
Provides login/session endpoints and scoped CRUD for players, matches,
tournaments, events and attendance.
"""

import logging
from typing import ClassVar

from fastapi import Depends, FastAPI, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, model_validator

from backend.config import CORS_ORIGINS, LOG_LEVEL
from backend.core import guard
from backend.core.errors import NotFound, PortalError
from backend.core.models import (
    AttendanceStatus,
    EventType,
    Identity,
    PlayerStatus,
    TournamentStatus,
)
from backend.core.store import Collection, EntityStore, attendance_summary

from .auth import clear_token_cookie, get_current_identity, require_admin, set_token_cookie
from .database import get_store, init_store

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Team Portal API",
    description="Backend API for the team portal - players, matches, tournaments, events and attendance",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request, call_next):
    """Log method and path so 500s can be traced to the failing endpoint."""
    method = getattr(request, "method", "?")
    url = getattr(request, "url", None)
    path = url.path if url else "?"
    try:
        response = await call_next(request)
        if response.status_code >= 500:
            logger.error("[%s] %s %s", response.status_code, method, path)
        return response
    except Exception:
        logger.error("[500] %s %s (exception)", method, path)
        raise


@app.exception_handler(PortalError)
async def portal_error_handler(request, exc: PortalError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request, exc: RequestValidationError):
    """Malformed request bodies are 400s with the first offending field named."""
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=400, content={"error": message})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request, exc):
    """Anything unexpected becomes a generic 500; details go to the log only."""
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# ===== Pydantic Models =====

class LoginRequest(BaseModel):
    username: str
    password: str


class UpdateRequest(BaseModel):
    """PUT body: omitted fields are left alone; an explicit null clears a field listed in NULLABLE."""
    NULLABLE: ClassVar[tuple[str, ...]] = ()

    @model_validator(mode="after")
    def reject_nulls(self):
        cleared = sorted(
            name for name in self.model_fields_set
            if getattr(self, name) is None and name not in self.NULLABLE
        )
        if cleared:
            raise ValueError(f"cannot be null: {', '.join(cleared)}")
        return self


class CreatePlayerRequest(BaseModel):
    name: str = Field(min_length=1)
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)
    email: str = ""
    phone: str = ""
    position: str = ""
    jersey_number: str = ""
    date_of_birth: str = ""
    status: PlayerStatus = PlayerStatus.ACTIVE


class UpdatePlayerRequest(UpdateRequest):
    name: str | None = Field(default=None, min_length=1)
    email: str | None = None
    phone: str | None = None
    position: str | None = None
    jersey_number: str | None = None
    date_of_birth: str | None = None
    status: PlayerStatus | None = None


class CreateMatchRequest(BaseModel):
    title: str = Field(min_length=1)
    opponent: str = ""
    date: str = ""
    time: str = ""
    location: str = ""
    result: str | None = None
    score: str | None = None
    player_ids: list[str] = []


class UpdateMatchRequest(UpdateRequest):
    NULLABLE: ClassVar[tuple[str, ...]] = ("result", "score")

    title: str | None = Field(default=None, min_length=1)
    opponent: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    result: str | None = None
    score: str | None = None
    player_ids: list[str] | None = None


class CreateTournamentRequest(BaseModel):
    name: str = Field(min_length=1)
    start_date: str = ""
    end_date: str = ""
    location: str = ""
    description: str = ""
    status: TournamentStatus = TournamentStatus.UPCOMING
    player_ids: list[str] = []


class UpdateTournamentRequest(UpdateRequest):
    name: str | None = Field(default=None, min_length=1)
    start_date: str | None = None
    end_date: str | None = None
    location: str | None = None
    description: str | None = None
    status: TournamentStatus | None = None
    player_ids: list[str] | None = None


class CreateEventRequest(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    date: str = ""
    time: str = ""
    location: str = ""
    type: EventType = EventType.TRAINING
    player_ids: list[str] = []


class UpdateEventRequest(UpdateRequest):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = None
    date: str | None = None
    time: str | None = None
    location: str | None = None
    type: EventType | None = None
    player_ids: list[str] | None = None


class CreateAttendanceRequest(BaseModel):
    player_id: str = Field(min_length=1)
    date: str = Field(min_length=1)
    status: AttendanceStatus
    notes: str | None = None


class UpdateAttendanceRequest(UpdateRequest):
    NULLABLE: ClassVar[tuple[str, ...]] = ("notes",)

    player_id: str | None = Field(default=None, min_length=1)
    date: str | None = Field(default=None, min_length=1)
    status: AttendanceStatus | None = None
    notes: str | None = None


# ===== Helper Functions =====

def _changes(request: BaseModel) -> dict:
    """Fields the client actually sent; explicit nulls are kept so they clear the field."""
    return request.model_dump(exclude_unset=True)


def _visible(identity: Identity, collection: Collection) -> list[dict]:
    records = guard.scope_query(identity, collection.all(), collection.owns)
    return [r.to_dict() for r in records]


def _get_visible(identity: Identity, collection: Collection, record_id: str) -> dict:
    """The record if it exists and the caller may see it; otherwise 404 (existence is not revealed)."""
    record = collection.get(record_id)
    if record is None or not guard.can_see(identity, record, collection.owns):
        raise NotFound(f"{collection.kind.capitalize()} not found")
    return record.to_dict()


@app.on_event("startup")
def on_startup():
    init_store()


# ===== API Endpoints =====

@app.get("/")
def root():
    return {"message": "Team Portal API", "version": "1.0.0"}


# ----- Auth -----

@app.post("/auth/login")
def login(request: LoginRequest, response: Response, store: EntityStore = Depends(get_store)):
    """Login with username and password. Returns the token and also sets it as the session cookie."""
    token, user = guard.login(store.users, request.username, request.password)
    set_token_cookie(response, token)
    return {"token": token, "user": user.to_dict()}


@app.post("/auth/logout")
def logout(response: Response):
    """Drop the session cookie. Tokens are stateless, so there is nothing to revoke server-side."""
    clear_token_cookie(response)
    return {"message": "Logged out"}


@app.get("/auth/me")
def auth_me(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    """Return the caller's user (id, username, role, player_id; password hash not included)."""
    user = guard.resolve(store.users, identity)
    return {"user": user.to_dict()}


# ----- Admin -----

@app.get("/admin/overview")
def admin_overview(identity: Identity = Depends(require_admin), store: EntityStore = Depends(get_store)):
    """Record counts per collection for the dashboard."""
    return {"counts": store.overview()}


# ----- Players -----

@app.get("/players")
def list_players(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    """All players for an admin; a player only sees their own profile."""
    return {"players": _visible(identity, store.players)}


@app.get("/players/{player_id}")
def get_player(
    player_id: str,
    identity: Identity = Depends(get_current_identity),
    store: EntityStore = Depends(get_store),
):
    return {"player": _get_visible(identity, store.players, player_id)}


@app.post("/players", status_code=201)
def create_player(
    request: CreatePlayerRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    """Create a player and the login account linked to it."""
    fields = request.model_dump(exclude={"username", "password"})
    player, user = store.create_player(request.username, request.password, **fields)
    return {"player": player.to_dict(), "user": {"id": user.id, "username": user.username}}


@app.put("/players/{player_id}")
def update_player(
    player_id: str,
    request: UpdatePlayerRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    player = store.players.update(player_id, _changes(request))
    return {"player": player.to_dict()}


@app.delete("/players/{player_id}")
def delete_player(
    player_id: str,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    """Delete a player together with its user account."""
    store.delete_player(player_id)
    return {"message": "Player deleted successfully"}


# ----- Matches -----

@app.get("/matches")
def list_matches(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    return {"matches": _visible(identity, store.matches)}


@app.get("/matches/{match_id}")
def get_match(
    match_id: str,
    identity: Identity = Depends(get_current_identity),
    store: EntityStore = Depends(get_store),
):
    return {"match": _get_visible(identity, store.matches, match_id)}


@app.post("/matches", status_code=201)
def create_match(
    request: CreateMatchRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    match = store.create_linked(store.matches, request.model_dump())
    return {"match": match.to_dict()}


@app.put("/matches/{match_id}")
def update_match(
    match_id: str,
    request: UpdateMatchRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    match = store.update_linked(store.matches, match_id, _changes(request))
    return {"match": match.to_dict()}


@app.delete("/matches/{match_id}")
def delete_match(
    match_id: str,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    store.matches.delete(match_id)
    return {"message": "Match deleted successfully"}


# ----- Tournaments -----

@app.get("/tournaments")
def list_tournaments(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    return {"tournaments": _visible(identity, store.tournaments)}


@app.get("/tournaments/{tournament_id}")
def get_tournament(
    tournament_id: str,
    identity: Identity = Depends(get_current_identity),
    store: EntityStore = Depends(get_store),
):
    return {"tournament": _get_visible(identity, store.tournaments, tournament_id)}


@app.post("/tournaments", status_code=201)
def create_tournament(
    request: CreateTournamentRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    tournament = store.create_linked(store.tournaments, request.model_dump())
    return {"tournament": tournament.to_dict()}


@app.put("/tournaments/{tournament_id}")
def update_tournament(
    tournament_id: str,
    request: UpdateTournamentRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    tournament = store.update_linked(store.tournaments, tournament_id, _changes(request))
    return {"tournament": tournament.to_dict()}


@app.delete("/tournaments/{tournament_id}")
def delete_tournament(
    tournament_id: str,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    store.tournaments.delete(tournament_id)
    return {"message": "Tournament deleted successfully"}


# ----- Events -----

@app.get("/events")
def list_events(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    return {"events": _visible(identity, store.events)}


@app.get("/events/{event_id}")
def get_event(
    event_id: str,
    identity: Identity = Depends(get_current_identity),
    store: EntityStore = Depends(get_store),
):
    return {"event": _get_visible(identity, store.events, event_id)}


@app.post("/events", status_code=201)
def create_event(
    request: CreateEventRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    event = store.create_linked(store.events, request.model_dump())
    return {"event": event.to_dict()}


@app.put("/events/{event_id}")
def update_event(
    event_id: str,
    request: UpdateEventRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    event = store.update_linked(store.events, event_id, _changes(request))
    return {"event": event.to_dict()}


@app.delete("/events/{event_id}")
def delete_event(
    event_id: str,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    store.events.delete(event_id)
    return {"message": "Event deleted successfully"}


# ----- Attendance -----

@app.get("/attendance")
def list_attendance(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    return {"attendance": _visible(identity, store.attendance)}


@app.get("/attendance/stats")
def attendance_stats(identity: Identity = Depends(get_current_identity), store: EntityStore = Depends(get_store)):
    """Present/absent/late counts over the attendance records the caller can see."""
    records = guard.scope_query(identity, store.attendance.all(), store.attendance.owns)
    return {"stats": attendance_summary(records)}


@app.get("/attendance/{attendance_id}")
def get_attendance(
    attendance_id: str,
    identity: Identity = Depends(get_current_identity),
    store: EntityStore = Depends(get_store),
):
    return {"attendance": _get_visible(identity, store.attendance, attendance_id)}


@app.post("/attendance", status_code=201)
def create_attendance(
    request: CreateAttendanceRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    attendance = store.create_linked(store.attendance, request.model_dump())
    return {"attendance": attendance.to_dict()}


@app.put("/attendance/{attendance_id}")
def update_attendance(
    attendance_id: str,
    request: UpdateAttendanceRequest,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    attendance = store.update_linked(store.attendance, attendance_id, _changes(request))
    return {"attendance": attendance.to_dict()}


@app.delete("/attendance/{attendance_id}")
def delete_attendance(
    attendance_id: str,
    identity: Identity = Depends(require_admin),
    store: EntityStore = Depends(get_store),
):
    store.attendance.delete(attendance_id)
    return {"message": "Attendance record deleted successfully"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
