# tests/conftest.py
import sys
from pathlib import Path
from unittest.mock import MagicMock

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from authorize.models import DatabaseManager  # noqa: E402
from authorize.service import AuthorizationService  # noqa: E402
from authorize.store import DatabaseStore  # noqa: E402

PRIVS = {
    1: "1st Admin Priv",
    2: "2nd Admin Priv",
    3: "1st Member Priv",
    4: "2nd Member Priv",
}


@pytest.fixture
def privs():
    return dict(PRIVS)


@pytest.fixture
def db_manager():
    """Create temporary in-memory database for testing."""
    manager = DatabaseManager("sqlite:///:memory:")
    manager.create_tables()
    yield manager
    manager.drop_tables()
    manager.dispose()


@pytest.fixture
def store(db_manager):
    return DatabaseStore(db_manager)


@pytest.fixture
def seeded_store(store):
    """Users David(1), Mike(2), Rick(3); roles Admin(1), Member(2)."""
    for user in ("David", "Mike", "Rick"):
        store.insert("users", [None, user])
    for role in ("Admin", "Member"):
        store.insert("roles", [None, role])
    return store


@pytest.fixture
def authorize(seeded_store):
    """Service over the standard scenario graph.

    David -> Admin, Member; Mike -> Member.
    Admin -> privs 1, 2; Member -> privs 3, 4.
    Direct grants: Mike -> 1, Rick -> 2, David -> 2 (already held via Admin).
    """
    service = AuthorizationService(seeded_store, PRIVS)

    service.add_user_role("David", "Admin")
    service.add_user_role("David", "Member")
    service.add_user_role("Mike", "Member")

    service.add_role_priv("Admin", "1st Admin Priv")
    service.add_role_priv("Admin", "2nd Admin Priv")
    service.add_role_priv("Member", "1st Member Priv")
    service.add_role_priv("Member", "2nd Member Priv")

    service.add_user_priv("Mike", "1st Admin Priv")
    service.add_user_priv("Rick", "2nd Admin Priv")
    service.add_user_priv("David", "2nd Admin Priv")
    return service


@pytest.fixture
def mock_store():
    """Store double: every lookup misses unless a test configures it."""
    store = MagicMock()
    store.fetch_value.return_value = None
    store.fetch_group.return_value = {}
    return store
