"""
Tests for the in-memory store: credential uniqueness, compound player
operations, CRUD semantics and locking under concurrent writers.
"""
import logging
import threading

import pytest

from backend.core.errors import Conflict, NotFound, ValidationError
from backend.core.models import (
    Attendance,
    AttendanceStatus,
    Player,
    PlayerStatus,
    Role,
    TournamentStatus,
    User,
)
from backend.core.passwords import verify_password
from backend.core.store import EntityStore, attendance_summary


class TestCredentialStore:

    def test_admin_is_seeded_once(self, store):
        admin = store.users.find_by_username("admin")
        assert admin.role is Role.ADMIN
        assert admin.player_id is None
        assert store.seed_admin("admin", "other") == admin
        assert len(store.users.all()) == 1

    def test_duplicate_username_conflicts(self, store):
        dup = User(id="user-x", username="admin", password_hash="h", role=Role.ADMIN)
        with pytest.raises(Conflict):
            store.users.create(dup)

    def test_delete_is_idempotent(self, store):
        admin = store.users.find_by_username("admin")
        store.users.delete(admin.id)
        store.users.delete(admin.id)
        assert store.users.find_by_username("admin") is None

    def test_public_view_hides_password_hash(self, store):
        assert "password_hash" not in store.users.find_by_username("admin").to_dict()


class TestCreatePlayer:

    def test_creates_linked_user_and_player(self, store):
        player, user = store.create_player("alice", "pw1", name="Alice", jersey_number="10")
        assert user.role is Role.PLAYER
        assert user.player_id == player.id
        assert player.user_id == user.id
        assert player.status is PlayerStatus.ACTIVE
        assert verify_password("pw1", user.password_hash)
        assert store.players.get(player.id) == player
        assert store.users.find_by_username("alice") == user

    def test_duplicate_username_leaves_no_player(self, store):
        store.create_player("alice", "pw1", name="Alice")
        with pytest.raises(Conflict):
            store.create_player("alice", "pw2", name="Other Alice")
        assert len(store.players) == 1
        assert [p.name for p in store.players.all()] == ["Alice"]

    def test_bad_fields_leave_no_user(self, store):
        with pytest.raises(ValidationError):
            store.create_player("bob", "pw", name="Bob", shoe_size=44)
        assert store.users.find_by_username("bob") is None
        assert len(store.players) == 0

    def test_username_and_password_required(self, store):
        with pytest.raises(ValidationError):
            store.create_player("  ", "pw", name="X")
        with pytest.raises(ValidationError):
            store.create_player("x", "", name="X")


class TestDeletePlayer:

    def test_deletes_linked_user(self, store):
        player, _ = store.create_player("alice", "pw1", name="Alice")
        store.delete_player(player.id)
        assert store.players.get(player.id) is None
        assert store.users.find_by_username("alice") is None
        assert store.users.find_by_player_id(player.id) == []

    def test_missing_player_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.delete_player("player-missing")

    def test_missing_user_still_deletes_with_warning(self, store, caplog):
        player, user = store.create_player("alice", "pw1", name="Alice")
        store.users.delete(user.id)
        with caplog.at_level(logging.WARNING, logger="backend.core.store"):
            store.delete_player(player.id)
        assert store.players.get(player.id) is None
        assert any("no linked user" in r.getMessage() for r in caplog.records)

    def test_other_players_untouched(self, store):
        alice, _ = store.create_player("alice", "pw1", name="Alice")
        bob, bob_user = store.create_player("bob", "pw2", name="Bob")
        store.delete_player(alice.id)
        assert store.players.get(bob.id) == bob
        assert store.users.find_by_username("bob") == bob_user


class TestCollections:

    def test_create_assigns_fresh_ids(self, store):
        a = store.matches.create(title="A")
        b = store.matches.create(title="B")
        assert a.id != b.id
        assert a.id.startswith("match-")

    def test_read_all_keeps_insertion_order(self, store):
        titles = ["A", "B", "C"]
        for t in titles:
            store.events.create(title=t)
        assert [e.title for e in store.events.all()] == titles

    def test_update_merges_fields(self, store):
        t = store.tournaments.create(name="Cup", location="Oslo")
        updated = store.tournaments.update(t.id, {"status": TournamentStatus.ONGOING})
        assert updated.status is TournamentStatus.ONGOING
        assert updated.location == "Oslo"
        assert store.tournaments.get(t.id) == updated
        # The pre-update record is an immutable snapshot
        assert t.status is TournamentStatus.UPCOMING

    def test_update_missing_is_not_found(self, store):
        with pytest.raises(NotFound):
            store.matches.update("match-missing", {"title": "X"})

    def test_update_rejects_unknown_and_immutable_fields(self, store):
        m = store.matches.create(title="A")
        with pytest.raises(ValidationError):
            store.matches.update(m.id, {"colour": "red"})
        with pytest.raises(ValidationError):
            store.matches.update(m.id, {"id": "match-other"})

    def test_enum_fields_are_coerced_from_strings(self, store):
        alice, _ = store.create_player("alice", "pw1", name="Alice", status="inactive")
        assert alice.status is PlayerStatus.INACTIVE
        record = store.create_linked(store.attendance, {"player_id": alice.id, "date": "2026-01-01",
                                                        "status": "late"})
        assert record.status is AttendanceStatus.LATE
        updated = store.attendance.update(record.id, {"status": "present"})
        assert updated.status is AttendanceStatus.PRESENT

    def test_unknown_enum_values_are_rejected(self, store):
        alice, _ = store.create_player("alice", "pw1", name="Alice")
        with pytest.raises(ValidationError):
            store.attendance.create(player_id=alice.id, date="2026-01-01", status="bogus")
        with pytest.raises(ValidationError):
            store.events.create(title="Party", type="rave")
        assert len(store.attendance) == 0
        t = store.tournaments.create(name="Cup")
        with pytest.raises(ValidationError):
            store.tournaments.update(t.id, {"status": "cancelled"})
        assert store.tournaments.get(t.id).status is TournamentStatus.UPCOMING
        assert attendance_summary(store.attendance.all())["total"] == 0

    def test_player_link_cannot_be_rewritten(self, store):
        player, _ = store.create_player("alice", "pw1", name="Alice")
        with pytest.raises(ValidationError):
            store.players.update(player.id, {"user_id": "user-other"})

    def test_delete_absent_is_noop(self, store):
        assert store.matches.delete("match-missing") is False
        m = store.matches.create(title="A")
        assert store.matches.delete(m.id) is True
        assert store.matches.get(m.id) is None

    def test_for_player(self, store):
        alice, _ = store.create_player("alice", "pw1", name="Alice")
        bob, _ = store.create_player("bob", "pw2", name="Bob")
        store.create_linked(store.matches, {"title": "A", "player_ids": [alice.id]})
        store.create_linked(store.matches, {"title": "B", "player_ids": [bob.id]})
        store.create_linked(store.matches, {"title": "C", "player_ids": [alice.id, bob.id]})
        store.create_linked(store.attendance, {"player_id": alice.id, "date": "2026-01-01",
                                               "status": AttendanceStatus.PRESENT})
        assert [m.title for m in store.matches.for_player(alice.id)] == ["A", "C"]
        assert len(store.attendance.for_player(alice.id)) == 1
        assert store.attendance.for_player(bob.id) == []
        assert store.players.for_player(bob.id) == [bob]

    def test_linked_records_need_existing_players(self, store):
        with pytest.raises(ValidationError):
            store.create_linked(store.matches, {"title": "A", "player_ids": ["player-ghost"]})
        with pytest.raises(ValidationError):
            store.create_linked(store.attendance, {"player_id": "player-ghost", "date": "2026-01-01",
                                                   "status": AttendanceStatus.ABSENT})
        assert len(store.matches) == 0
        assert len(store.attendance) == 0

    def test_overview_and_reset(self, store):
        store.create_player("alice", "pw1", name="Alice")
        store.matches.create(title="A")
        counts = store.overview()
        assert counts["players"] == 1
        assert counts["users"] == 2
        assert counts["matches"] == 1
        store.reset()
        assert set(store.overview().values()) == {0}


class TestAttendanceSummary:

    def test_counts_and_rate(self):
        records = [
            Attendance(id="a1", player_id="p", date="d1", status=AttendanceStatus.PRESENT),
            Attendance(id="a2", player_id="p", date="d2", status=AttendanceStatus.LATE),
            Attendance(id="a3", player_id="p", date="d3", status=AttendanceStatus.ABSENT),
            Attendance(id="a4", player_id="p", date="d4", status=AttendanceStatus.PRESENT),
        ]
        summary = attendance_summary(records)
        assert summary == {"total": 4, "present": 2, "absent": 1, "late": 1, "attendance_rate": 0.75}

    def test_empty(self):
        assert attendance_summary([])["attendance_rate"] == 0.0


class TestConcurrency:

    def test_parallel_creates_keep_every_record(self):
        store = EntityStore()
        errors = []

        def worker(n):
            try:
                for i in range(25):
                    store.matches.create(title=f"{n}-{i}")
            except Exception as e:  # collected so the assertion below can report it
                errors.append(e)

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert errors == []
        assert len(store.matches) == 200
        assert len({m.id for m in store.matches.all()}) == 200

    def test_racing_same_username_only_one_wins(self):
        store = EntityStore()
        outcomes = []
        barrier = threading.Barrier(6)

        def worker(n):
            barrier.wait()
            try:
                store.create_player("sam", "pw", name=f"Sam {n}")
                outcomes.append("ok")
            except Conflict:
                outcomes.append("conflict")

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(6)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert outcomes.count("ok") == 1
        assert outcomes.count("conflict") == 5
        assert len(store.players) == 1
        assert isinstance(store.players.all()[0], Player)
