"""Tests for settings loading, object storage and the fallback-engine registry."""

import pytest

from audiotext.asr import registry
from audiotext.asr.workers_ai import WorkersAIEngine
from audiotext.config import Settings, load_settings
from audiotext.errors import StorageError
from audiotext.storage import ObjectStorage, make_storage_key


def test_load_settings_reads_env(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_REQUESTS", "7")
    monkeypatch.setenv("CORS_ORIGINS", "https://a.test, https://b.test")
    monkeypatch.setenv("COOKIE_SECURE", "false")
    settings = load_settings()
    assert settings.rate_limit_requests == 7
    assert settings.cors_origins == ["https://a.test", "https://b.test"]
    assert settings.cookie_secure is False


def test_production_refuses_default_secret(monkeypatch):
    monkeypatch.setenv("AUDIOTEXT_ENV", "production")
    monkeypatch.delenv("AUDIOTEXT_SECRET_KEY", raising=False)
    with pytest.raises(RuntimeError):
        load_settings()


def test_storage_put_get_delete(tmp_path):
    storage = ObjectStorage(str(tmp_path))
    key = make_storage_key("u1", "../../etc/My Song.mp3")
    assert key.startswith("audio/u1/") and key.endswith("-My_Song.mp3")

    assert storage.put(key, b"abc") == 3
    assert storage.get(key) == b"abc"
    assert storage.delete(key) is True
    assert storage.get(key) is None
    assert storage.delete(key) is False


def test_storage_rejects_keys_outside_root(tmp_path):
    with pytest.raises(StorageError):
        ObjectStorage(str(tmp_path)).get("../outside.wav")


def test_registry_builds_and_caches_engines():
    settings = Settings(fallback_engine="workers-ai", workers_ai_url="https://registry.test/run")
    engine = registry.get_fallback_engine(settings)
    assert isinstance(engine, WorkersAIEngine)
    assert registry.get_fallback_engine(settings) is engine


def test_registry_off_and_unknown():
    assert registry.get_fallback_engine(Settings(fallback_engine="off")) is None
    with pytest.raises(RuntimeError):
        registry.get_fallback_engine(Settings(fallback_engine="vosk"))


def test_registry_local_engine_defers_model_load():
    from audiotext.asr.faster_whisper import FasterWhisperEngine

    engine = registry.get_fallback_engine(Settings(fallback_engine="local", faster_whisper_model="tiny"))
    assert isinstance(engine, FasterWhisperEngine)
    assert engine.model_name == "tiny"
    assert engine._model is None
    assert "local" in registry.available_engines()
