"""
Tests for the in-memory session store.
"""

from bgh_bridge.utils.sessions import SessionStore


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_create_and_get():
    store = SessionStore(ttl_seconds=60, clock=FakeClock())

    session = store.create("user@example.com", "pw")

    assert store.get(session.token) is session
    assert session.credentials.email == "user@example.com"
    assert session.credentials.password == "pw"
    assert len(store) == 1


def test_tokens_are_unique():
    store = SessionStore()
    assert store.create("a@example.com", "x").token != store.create("a@example.com", "x").token


def test_expired_session_is_removed():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    session = store.create("user@example.com", "pw")

    clock.now += 61

    assert store.get(session.token) is None
    assert len(store) == 0


def test_expiry_slides_on_use():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    session = store.create("user@example.com", "pw")

    clock.now += 50
    assert store.get(session.token) is session
    clock.now += 50
    assert store.get(session.token) is session


def test_unknown_or_missing_token():
    store = SessionStore()
    assert store.get(None) is None
    assert store.get("") is None
    assert store.get("nope") is None


def test_delete_and_purge():
    clock = FakeClock()
    store = SessionStore(ttl_seconds=60, clock=clock)
    kept = store.create("a@example.com", "x")
    store.create("b@example.com", "y")

    store.delete(kept.token)
    store.delete(kept.token)
    clock.now += 61

    assert store.purge_expired() == 1
    assert len(store) == 0


def test_session_repr_hides_password():
    session = SessionStore().create("user@example.com", "hunter2")
    assert "hunter2" not in repr(session)
