"""Tests for the KV-backed session service and the in-process KV store."""

import json

from audiotext import sessions
from audiotext.kv import MemoryKeyValueStore
from audiotext.sessions import SessionService, session_key, user_sessions_key


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


def test_create_writes_record_and_user_index():
    kv = MemoryKeyValueStore()
    svc = SessionService(kv, ttl=60)
    sid = svc.create("u1", "tok")

    record = json.loads(kv.get(session_key(sid)))
    assert record["userId"] == "u1"
    assert record["token"] == "tok"
    assert record["createdAt"] and record["lastAccessedAt"]
    assert json.loads(kv.get(user_sessions_key("u1"))) == [sid]


def test_get_returns_record_and_none_when_missing():
    svc = SessionService(MemoryKeyValueStore(), ttl=60)
    sid = svc.create("u1", "tok")
    assert svc.get(sid).token == "tok"
    assert svc.get("nope") is None


def test_sessions_expire_with_ttl():
    clock = FakeClock()
    kv = MemoryKeyValueStore(clock=clock)
    svc = SessionService(kv, ttl=60)
    sid = svc.create("u1", "tok")
    clock.now += 61
    assert svc.get(sid) is None
    assert user_sessions_key("u1") not in kv


def test_delete_drops_index_key_when_last_session_goes():
    kv = MemoryKeyValueStore()
    svc = SessionService(kv, ttl=60)
    a = svc.create("u1", "t1")
    b = svc.create("u1", "t2")

    svc.delete(a)
    assert svc.get(a) is None
    assert json.loads(kv.get(user_sessions_key("u1"))) == [b]

    svc.delete(b)
    assert user_sessions_key("u1") not in kv


def test_delete_all_removes_every_session():
    kv = MemoryKeyValueStore()
    svc = SessionService(kv, ttl=60)
    ids = [svc.create("u1", f"t{i}") for i in range(3)]
    other = svc.create("u2", "x")

    assert svc.delete_all("u1") == 3
    assert all(svc.get(i) is None for i in ids)
    assert svc.get(other) is not None


def test_memory_incr_keeps_first_expiry():
    clock = FakeClock()
    kv = MemoryKeyValueStore(clock=clock)
    assert kv.incr("k", ttl=10) == 1
    clock.now += 5
    assert kv.incr("k", ttl=10) == 2
    clock.now += 6
    assert kv.incr("k", ttl=10) == 1


def test_get_refreshes_last_accessed_at(monkeypatch):
    stamps = iter(["2026-01-01T10:00:00+00:00", "2026-01-01T10:05:00+00:00"])
    monkeypatch.setattr(sessions, "_now_iso", lambda: next(stamps))
    kv = MemoryKeyValueStore()
    svc = SessionService(kv, ttl=60)
    sid = svc.create("u1", "tok")

    record = svc.get(sid)
    assert record.created_at == "2026-01-01T10:00:00+00:00"
    assert record.last_accessed_at == "2026-01-01T10:05:00+00:00"
    assert record.last_accessed_at >= record.created_at

    stored = json.loads(kv.get(session_key(sid)))
    assert stored["createdAt"] == "2026-01-01T10:00:00+00:00"
    assert stored["lastAccessedAt"] == "2026-01-01T10:05:00+00:00"
