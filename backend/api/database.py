"""
Store setup for the team portal.
There is no database engine: the process owns one EntityStore, and all data is lost on restart.
"""

from backend.config import ADMIN_PASSWORD, ADMIN_USERNAME
from backend.core.store import EntityStore

store = EntityStore()


def get_store() -> EntityStore:
    """Dependency that yields the process store."""
    return store


def init_store() -> None:
    """Provision the admin account."""
    store.seed_admin(ADMIN_USERNAME, ADMIN_PASSWORD)
