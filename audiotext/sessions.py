# audiotext/sessions.py
"""Server-side sessions: opaque cookie id -> JWT, kept in the KV store."""
from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional

from audiotext.config import SESSION_TTL_SEC
from audiotext.kv import KeyValueStore

log = logging.getLogger(__name__)


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def session_key(session_id: str) -> str:
    return f"session:{session_id}"


def user_sessions_key(user_id: str) -> str:
    return f"user_sessions:{user_id}"


@dataclass
class SessionRecord:
    session_id: str
    user_id: str
    token: str
    created_at: str
    last_accessed_at: str

    def to_json(self) -> str:
        return json.dumps(
            {
                "userId": self.user_id,
                "token": self.token,
                "createdAt": self.created_at,
                "lastAccessedAt": self.last_accessed_at,
            }
        )

    @classmethod
    def from_json(cls, session_id: str, raw: str) -> "SessionRecord":
        data = json.loads(raw)
        return cls(
            session_id=session_id,
            user_id=data["userId"],
            token=data["token"],
            created_at=data["createdAt"],
            last_accessed_at=data.get("lastAccessedAt") or data["createdAt"],
        )


class SessionService:
    """KV errors propagate to the caller; nothing here retries."""

    def __init__(self, kv: KeyValueStore, ttl: int = SESSION_TTL_SEC):
        self.kv = kv
        self.ttl = ttl

    def _user_sessions(self, user_id: str) -> List[str]:
        raw = self.kv.get(user_sessions_key(user_id))
        return json.loads(raw) if raw else []

    def create(self, user_id: str, token: str) -> str:
        session_id = str(uuid.uuid4())
        now = _now_iso()
        record = SessionRecord(session_id, user_id, token, created_at=now, last_accessed_at=now)
        self.kv.put(session_key(session_id), record.to_json(), ttl=self.ttl)

        sessions = self._user_sessions(user_id)
        sessions.append(session_id)
        self.kv.put(user_sessions_key(user_id), json.dumps(sessions), ttl=self.ttl)
        log.debug("session created user=%s sessions=%d", user_id, len(sessions))
        return session_id

    def get(self, session_id: str) -> Optional[SessionRecord]:
        raw = self.kv.get(session_key(session_id))
        if not raw:
            return None
        record = SessionRecord.from_json(session_id, raw)
        record.last_accessed_at = _now_iso()
        self.kv.put(session_key(session_id), record.to_json(), ttl=self.ttl)
        return record

    def delete(self, session_id: str) -> None:
        raw = self.kv.get(session_key(session_id))
        if raw:
            record = SessionRecord.from_json(session_id, raw)
            remaining = [s for s in self._user_sessions(record.user_id) if s != session_id]
            if remaining:
                self.kv.put(user_sessions_key(record.user_id), json.dumps(remaining), ttl=self.ttl)
            else:
                self.kv.delete(user_sessions_key(record.user_id))
        self.kv.delete(session_key(session_id))

    def delete_all(self, user_id: str) -> int:
        sessions = self._user_sessions(user_id)
        for session_id in sessions:
            self.kv.delete(session_key(session_id))
        self.kv.delete(user_sessions_key(user_id))
        log.info("deleted %d session(s) for user=%s", len(sessions), user_id)
        return len(sessions)
