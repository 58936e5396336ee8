"""
Main entry point for the team portal core.
Demonstrates login, player provisioning and scoped queries with a simple scenario,
without the web layer.
"""

from backend.core.errors import InvalidCredentials, PortalError
from backend.core.guard import authenticate, login, require_admin, resolve, scope_query
from backend.core.store import EntityStore


def main():
    print("Team Portal Core - Auth & Scoped Store Demo")
    print("=" * 60)

    store = EntityStore()
    store.seed_admin("admin", "admin123")

    # ===== SCENARIO 1: Admin login =====
    print("\n[SCENARIO 1: Admin Login]")
    admin_token, _ = login(store.users, "admin", "admin123")
    admin = require_admin(authenticate(admin_token))
    print(f"✓ Logged in as admin (user_id={admin.user_id}, role={admin.role.value})")

    # ===== SCENARIO 2: Provision a player =====
    print("\n[SCENARIO 2: Create Player 'Alice']")
    alice, alice_user = store.create_player("alice", "pw1", name="Alice", position="Forward")
    print(f"✓ Player {alice.id} linked to user {alice_user.id} (role={alice_user.role.value})")

    alice_token, _ = login(store.users, "alice", "pw1")
    alice_identity = authenticate(alice_token)
    me = resolve(store.users, alice_identity)
    print(f"✓ Alice logged in; /auth/me player_id={me.player_id}")

    try:
        login(store.users, "alice", "wrong")
    except InvalidCredentials as e:
        print(f"✓ Wrong password rejected: {e.message}")

    # ===== SCENARIO 3: Scoped queries =====
    print("\n[SCENARIO 3: Scoped Match Queries]")
    m = store.create_linked(store.matches, {"title": "Match M", "player_ids": [alice.id]})
    n = store.create_linked(store.matches, {"title": "Match N", "player_ids": []})

    owns = store.matches.owns
    admin_view = [r.title for r in scope_query(admin, store.matches.all(), owns)]
    alice_view = [r.title for r in scope_query(alice_identity, store.matches.all(), owns)]
    print(f"Admin sees: {admin_view}")
    print(f"Alice sees: {alice_view}")
    assert admin_view == [m.title, n.title]
    assert alice_view == [m.title]

    # ===== SCENARIO 4: Cascading delete =====
    print("\n[SCENARIO 4: Delete Player Cascades to User]")
    store.delete_player(alice.id)
    print(f"Lookup 'alice' after delete: {store.users.find_by_username('alice')}")
    try:
        resolve(store.users, alice_identity)
    except PortalError as e:
        print(f"✓ Alice's old token is refused: {e.message}")

    # ===== Summary =====
    print("\n" + "=" * 60)
    print("✓ All core features demonstrated successfully:")
    print("  • Password login with signed session tokens")
    print("  • Player + user provisioning as one operation")
    print("  • Admin sees everything, players see their own records")
    print("  • Player deletion removes the linked user")
    print("=" * 60)


if __name__ == "__main__":
    main()
