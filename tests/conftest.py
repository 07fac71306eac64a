"""Pytest fixtures for AudioText tests.

Test isolation strategy:
- Every test gets a fresh app over an in-memory SQLite DB (StaticPool) and an
  in-process KV store, so nothing leaks between tests.
- Transcription engines are replaced by scripted fakes; external HTTP APIs
  (LLM, Stripe, Whisper) are mocked with respx where the real client is used.
- Rate limiting is off unless a test turns it on through ``make_settings``.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import pytest
from fastapi.testclient import TestClient

from audiotext.asr.pipeline import TranscriptionPipeline
from audiotext.config import Settings
from audiotext.kv import MemoryKeyValueStore
from audiotext.main import create_app
from audiotext.storage import ObjectStorage
from tests.helpers import FakeFallback, FakeWhisper, register


@pytest.fixture
def make_settings(tmp_path):
    def _make(**overrides: Any) -> Settings:
        base = Settings(
            environment="test",
            secret_key="test-secret-key",
            database_url="sqlite://",
            storage_dir=str(tmp_path / "uploads"),
            fallback_engine="off",
            rate_limit_enabled=False,
            llm_api_url="https://llm.test/v1",
            llm_api_key="sk-test",
        )
        return replace(base, **overrides)

    return _make


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def whisper() -> FakeWhisper:
    return FakeWhisper()


@pytest.fixture
def fallback() -> FakeFallback:
    return FakeFallback()


@pytest.fixture
def storage(settings) -> ObjectStorage:
    return ObjectStorage(settings.storage_dir)


@pytest.fixture
def pipeline(storage, whisper, fallback) -> TranscriptionPipeline:
    return TranscriptionPipeline(storage, whisper, fallback)


@pytest.fixture
def app(settings, kv, pipeline):
    return create_app(settings, kv=kv, pipeline=pipeline)


@pytest.fixture
def client(app):
    # https so the Secure session cookie is sent back by the client jar
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture
def user_token(client) -> str:
    resp = register(client)
    assert resp.status_code == 200, resp.text
    client.cookies.clear()
    return resp.json()["data"]["token"]
