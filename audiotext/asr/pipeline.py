# audiotext/asr/pipeline.py
"""
storage -> primary Whisper API -> (on failure) fallback engine + cleanup -> segments.

Confidence is per path (PRIMARY_CONFIDENCE / FALLBACK_CONFIDENCE) unless the
engine reports word probabilities, in which case each segment carries their
mean and the result carries the mean over segments.

A 2xx primary response that cannot be normalized is treated like a failed
call: the fallback engine runs.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from audiotext.asr.postprocess import (
    Segment, clean_transcript, filter_segments, group_words, segments_from_engine, single_segment,
)
from audiotext.asr.registry import FallbackEngine
from audiotext.asr.whisper_api import WhisperApiClient
from audiotext.errors import StorageError, TranscriptionError, UpstreamError
from audiotext.storage import ObjectStorage

log = logging.getLogger(__name__)

PRIMARY_CONFIDENCE = 0.95
FALLBACK_CONFIDENCE = 0.75
PRIMARY_ENGINE = "whisper-api"

# what a malformed engine payload raises while being normalized
_MALFORMED = (AttributeError, KeyError, TypeError, ValueError)


@dataclass
class TranscriptionResult:
    text: str
    confidence: float
    language: str
    segments: List[Segment] = field(default_factory=list)
    engine: str = PRIMARY_ENGINE
    duration: Optional[float] = None

    def segment_dicts(self) -> List[Dict[str, Any]]:
        return [s.to_dict() for s in self.segments]


def _mean_confidence(segments: List[Segment], default: float) -> float:
    if not segments:
        return default
    return round(sum(s.confidence for s in segments) / len(segments), 4)


def _duration(raw: Dict[str, Any], known: Optional[float]) -> Optional[float]:
    value = raw.get("duration") or raw.get("duration_sec")
    try:
        return float(value) if value else known
    except (TypeError, ValueError):
        return known


def normalize_primary(raw: Dict[str, Any], *, duration: Optional[float] = None) -> TranscriptionResult:
    text = (raw.get("text") or "").strip()
    duration = _duration(raw, duration)
    words = raw.get("words") or []
    if words:
        segments = group_words(words, confidence=PRIMARY_CONFIDENCE, duration=duration)
    else:
        segments = single_segment(text, confidence=PRIMARY_CONFIDENCE, duration=duration)
    return TranscriptionResult(
        text=text,
        confidence=_mean_confidence(segments, PRIMARY_CONFIDENCE),
        language=(raw.get("language") or "en"),
        segments=segments,
        engine=PRIMARY_ENGINE,
        duration=duration,
    )


def normalize_fallback(
    raw: Dict[str, Any], *, engine: str, duration: Optional[float] = None
) -> TranscriptionResult:
    duration = _duration(raw, duration)
    cleanup = clean_transcript(raw.get("text") or "")

    if raw.get("segments"):
        segments = segments_from_engine(raw["segments"], confidence=FALLBACK_CONFIDENCE, duration=duration)
    elif raw.get("words"):
        segments = group_words(raw["words"], confidence=FALLBACK_CONFIDENCE, duration=duration)
    else:
        segments = []
    segments = filter_segments(segments, cleanup)
    if not segments:
        segments = single_segment(cleanup.text, confidence=FALLBACK_CONFIDENCE, duration=duration)

    if cleanup.removed:
        log.info("[cleanup] removed %d repeated/short sentence(s)", len(cleanup.removed))
    return TranscriptionResult(
        text=cleanup.text,
        confidence=_mean_confidence(segments, FALLBACK_CONFIDENCE),
        language=(raw.get("language") or "en"),
        segments=segments,
        engine=engine,
        duration=duration,
    )


class TranscriptionPipeline:
    def __init__(
        self,
        storage: ObjectStorage,
        primary: Optional[WhisperApiClient],
        fallback: Optional[FallbackEngine] = None,
    ) -> None:
        self.storage = storage
        self.primary = primary
        self.fallback = fallback

    async def run(
        self,
        key: str,
        *,
        filename: str,
        mime_type: str = "application/octet-stream",
        duration: Optional[float] = None,
        language: Optional[str] = None,
    ) -> TranscriptionResult:
        t0 = time.time()
        audio = await run_in_threadpool(self.storage.get, key)
        if audio is None:
            raise StorageError("Audio file not found in storage")
        log.info("[pipeline] start key=%s bytes=%d", key, len(audio))

        primary_error: Optional[str] = None
        if self.primary is not None:
            try:
                raw = await self.primary.transcribe(audio, filename=filename, mime_type=mime_type, language=language)
                result = normalize_primary(raw, duration=duration)
            except UpstreamError as e:
                primary_error = e.message
                log.warning("[pipeline] primary failed (%s); trying fallback", e.message)
            except _MALFORMED as e:
                # a 2xx body we cannot read counts as a primary failure
                primary_error = f"Unreadable Whisper API response: {e}"
                log.warning("[pipeline] primary response unusable (%r); trying fallback", e)
            else:
                log.info(
                    "[pipeline] done engine=%s segments=%d latency=%.3fs",
                    result.engine, len(result.segments), time.time() - t0,
                )
                return result

        if self.fallback is None:
            raise TranscriptionError(primary_error or "No transcription engine available")

        # same buffer as the primary attempt; storage is not read twice
        try:
            raw = await self.fallback.transcribe(audio, language=language)
        except UpstreamError as e:
            log.error("[pipeline] fallback %s failed: %s", self.fallback.name, e.message)
            raise TranscriptionError(f"Failed to transcribe audio: {e.message}") from e

        try:
            result = normalize_fallback(raw, engine=self.fallback.name, duration=duration)
        except _MALFORMED as e:
            log.error("[pipeline] fallback %s returned an unusable response: %r", self.fallback.name, e)
            raise TranscriptionError(f"Failed to transcribe audio: unreadable {self.fallback.name} response") from e
        log.info(
            "[pipeline] done engine=%s segments=%d latency=%.3fs",
            result.engine, len(result.segments), time.time() - t0,
        )
        return result
