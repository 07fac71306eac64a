"""Shared fakes and request helpers for AudioText tests."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi.testclient import TestClient

from audiotext.errors import UpstreamError

STRONG_PASSWORD = "Abc12345!"


class FakeWhisper:
    """Stands in for WhisperApiClient: returns ``payload`` or raises UpstreamError when ``fail`` is set."""

    def __init__(self, payload: Optional[Dict[str, Any]] = None, *, fail: bool = False):
        self.payload = payload or {
            "text": "Hello world. This is a test.",
            "language": "en",
            "duration": 4.0,
            "words": [
                {"word": "Hello", "start": 0.0, "end": 0.4},
                {"word": "world.", "start": 0.4, "end": 0.9},
                {"word": "This", "start": 1.0, "end": 1.3},
                {"word": "is", "start": 1.3, "end": 1.5},
                {"word": "a", "start": 1.5, "end": 1.6},
                {"word": "test.", "start": 1.6, "end": 2.2},
            ],
        }
        self.fail = fail
        self.calls: List[bytes] = []

    async def transcribe(self, audio, *, filename, mime_type="application/octet-stream", language=None):
        self.calls.append(audio)
        if self.fail:
            raise UpstreamError("Whisper API error: 503 - unavailable")
        return self.payload


class FakeFallback:
    name = "workers-ai"

    def __init__(self, payload: Optional[Dict[str, Any]] = None, *, fail: bool = False):
        self.payload = payload or {"text": "Fallback transcript of the meeting.", "language": "en"}
        self.fail = fail
        self.calls: List[bytes] = []

    async def transcribe(self, audio, *, language=None):
        self.calls.append(audio)
        if self.fail:
            raise UpstreamError("Workers AI error: 500 - boom")
        return self.payload


def register(client: TestClient, email: str = "a@b.com", *, role: str = "student", name: str = "Test User"):
    return client.post(
        "/api/auth/register",
        json={"email": email, "password": STRONG_PASSWORD, "name": name, "role": role},
    )


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
