# audiotext/asr/registry.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, Protocol

from audiotext.config import Settings

log = logging.getLogger(__name__)


class FallbackEngine(Protocol):
    name: str

    async def transcribe(self, audio: bytes, *, language: Optional[str] = None) -> Dict[str, Any]: ...


# -------------------------------------------------------------------
# Factories (build lazily; the local engine loads its model on first call)
# -------------------------------------------------------------------
def _make_workers_ai(settings: Settings) -> FallbackEngine:
    from audiotext.asr.workers_ai import WorkersAIEngine

    return WorkersAIEngine(settings.workers_ai_url, settings.workers_ai_token, timeout=settings.http_timeout_sec)


def _make_local(settings: Settings) -> FallbackEngine:
    from audiotext.asr.faster_whisper import FasterWhisperEngine

    return FasterWhisperEngine(
        settings.faster_whisper_model,
        device=settings.faster_whisper_device,
        compute_type=settings.faster_whisper_compute_type,
    )


_CANDIDATES: Dict[str, Callable[[Settings], FallbackEngine]] = {
    "workers-ai": _make_workers_ai,
    "local": _make_local,
}

# model cache, keyed by engine name + model so the local model loads once per process
_ENGINES: Dict[str, FallbackEngine] = {}


def available_engines() -> list[str]:
    return list(_CANDIDATES.keys())


def get_fallback_engine(settings: Settings) -> Optional[FallbackEngine]:
    name = (settings.fallback_engine or "off").lower()
    if name in ("off", "none", ""):
        log.info("[registry] fallback engine disabled")
        return None
    if name not in _CANDIDATES:
        raise RuntimeError(f"Unknown FALLBACK_ENGINE {name!r}; choose one of {available_engines()} or 'off'")

    cache_key = f"{name}:{settings.faster_whisper_model}" if name == "local" else f"{name}:{settings.workers_ai_url}"
    if cache_key not in _ENGINES:
        _ENGINES[cache_key] = _CANDIDATES[name](settings)
        log.info("[registry] fallback engine '%s': %s", name, type(_ENGINES[cache_key]).__name__)
    return _ENGINES[cache_key]
