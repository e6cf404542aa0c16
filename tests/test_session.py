import json

from vyapaar.constants import MOCK_USERS, SESSION_KEY, STORAGE_KEY
from vyapaar.session import SessionContext
from vyapaar.storage import DocumentStore, MemoryStore

ADMIN, STAFF = MOCK_USERS


def test_starts_unauthenticated():
    session = SessionContext(MemoryStore())
    assert not session.is_authenticated
    assert session.restore() is None
    assert session.visible_views() == []


def test_login_persists_and_restores():
    backend = MemoryStore()
    SessionContext(backend).login(ADMIN)

    assert json.loads(backend.get(SESSION_KEY)) == {"id": "u1", "name": "Accountant (Admin)", "role": "admin"}

    fresh = SessionContext(backend)
    assert fresh.restore() == ADMIN
    assert fresh.is_authenticated


def test_logout_clears_session_but_not_expenses():
    backend = MemoryStore()
    DocumentStore(backend).load()
    session = SessionContext(backend)
    session.login(STAFF)

    session.logout()

    assert not session.is_authenticated
    assert backend.get(SESSION_KEY) is None
    assert backend.get(STORAGE_KEY) is not None


def test_unreadable_session_is_dropped():
    backend = MemoryStore({SESSION_KEY: "{broken"})
    session = SessionContext(backend)

    assert session.restore() is None
    assert backend.get(SESSION_KEY) is None


def test_staff_only_sees_new_entry():
    session = SessionContext(MemoryStore())
    session.login(STAFF)

    assert session.visible_views() == ["New Entry"]
    assert not session.can_view("Reports")
    assert session.landing_view() == "New Entry"


def test_admin_sees_everything():
    session = SessionContext(MemoryStore())
    session.login(ADMIN)

    assert session.visible_views() == ["Dashboard", "Review Queue", "New Entry", "Reports", "Settings"]
    assert session.landing_view() == "Dashboard"
    assert not session.can_view("Unknown")
