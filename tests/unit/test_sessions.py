"""Unit tests for the in-memory session store."""

from __future__ import annotations

from triage_orchestrator.engine.results import RunSession, RunStatus
from triage_orchestrator.state.sessions import InMemorySessionStore


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_put_get_delete() -> None:
    store = InMemorySessionStore()
    session = RunSession(session_id="s1", input_context={"a": 1})

    store.put("s1", session)

    assert store.get("s1") is session
    assert store.list() == [session]
    assert store.delete("s1") is True
    assert store.delete("s1") is False
    assert store.get("s1") is None


def test_sessions_expire_after_ttl() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    store.put("s1", RunSession(session_id="s1"))

    clock.now += 59
    assert store.get("s1") is not None

    clock.now += 2
    assert store.get("s1") is None
    assert store.list() == []


def test_updates_keep_original_age() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    session = RunSession(session_id="s1")
    store.put("s1", session)

    clock.now += 50
    session.status = RunStatus.COMPLETED
    store.put("s1", session)

    clock.now += 20
    assert store.get("s1") is None


def test_rerun_under_same_id_restarts_age() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=60, clock=clock)
    store.put("s1", RunSession(session_id="s1"))

    clock.now += 50
    rerun = RunSession(session_id="s1")
    store.put("s1", rerun)

    clock.now += 20
    assert store.get("s1") is rerun
    assert store.purge_older_than(30) == 0


def test_purge_older_than() -> None:
    clock = FakeClock()
    store = InMemorySessionStore(ttl_seconds=None, clock=clock)
    store.put("old", RunSession(session_id="old"))
    clock.now += 100
    store.put("new", RunSession(session_id="new"))

    assert store.purge_older_than(50) == 1
    assert store.get("old") is None
    assert store.get("new") is not None
    assert store.purge_expired() == 0
