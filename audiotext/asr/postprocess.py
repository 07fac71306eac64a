# audiotext/asr/postprocess.py
"""
Turning raw engine output into segments, and scrubbing fallback-engine noise.

Word grouping: a segment closes after WORDS_PER_SEGMENT words or after a word
ending a sentence. Cleanup (fallback path only): strip known artifact phrases,
then drop sentences repeated more than MAX_SENTENCE_REPEATS times (encoder
repetition on compressed audio) and sentences shorter than MIN_SENTENCE_CHARS.
"""
from __future__ import annotations

import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set

WORDS_PER_SEGMENT = 15
SENTENCE_END = (".", "!", "?")
MAX_SENTENCE_REPEATS = 3
MIN_SENTENCE_CHARS = 8

# Phrases the edge Whisper model emits on silence / compressed audio
ARTIFACT_PHRASES = (
    "Thank you for watching",
    "Thanks for watching",
    "Subtitles by the Amara.org community",
)

_SENTENCE_SPLIT = re.compile(r"[.!?]+")
_WS = re.compile(r"\s+")


@dataclass
class Segment:
    id: str
    start: float
    end: float
    text: str
    confidence: float
    speaker: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        out = {
            "id": self.id,
            "start": round(self.start, 3),
            "end": round(self.end, 3),
            "text": self.text,
            "confidence": round(self.confidence, 4),
        }
        if self.speaker:
            out["speaker"] = self.speaker
        return out


@dataclass
class CleanupResult:
    text: str
    removed: Set[str] = field(default_factory=set)


def _norm(s: str) -> str:
    return _WS.sub(" ", s).strip().lower()


def _clamp(start: float, end: float, duration: Optional[float]) -> tuple[float, float]:
    if duration and duration > 0:
        end = min(end, duration)
        start = min(start, end)
    return start, max(start, end)


# ---------------- word grouping ----------------
def group_words(
    words: Sequence[Dict[str, Any]],
    *,
    confidence: float,
    duration: Optional[float] = None,
) -> List[Segment]:
    segments: List[Segment] = []
    current: List[Dict[str, Any]] = []
    last_start = 0.0

    def flush() -> None:
        nonlocal current, last_start
        if not current:
            return
        start = max(float(current[0].get("start") or 0.0), last_start)
        end = max(float(current[-1].get("end") or start), start)
        start, end = _clamp(start, end, duration)
        probs = [w.get("probability") for w in current]
        conf = sum(probs) / len(probs) if all(isinstance(p, (int, float)) for p in probs) else confidence
        segments.append(
            Segment(
                id=f"segment_{len(segments)}",
                start=start,
                end=end,
                text=" ".join((w.get("word") or "").strip() for w in current),
                confidence=float(conf),
            )
        )
        last_start = start
        current = []

    for w in words:
        token = (w.get("word") or "").strip()
        if not token:
            continue
        current.append(w)
        if len(current) >= WORDS_PER_SEGMENT or token.endswith(SENTENCE_END):
            flush()
    flush()
    return segments


def single_segment(text: str, *, confidence: float, duration: Optional[float]) -> List[Segment]:
    text = (text or "").strip()
    if not text:
        return []
    return [Segment(id="segment_0", start=0.0, end=float(duration or 0.0), text=text, confidence=confidence)]


def segments_from_engine(
    raw_segments: Sequence[Dict[str, Any]],
    *,
    confidence: float,
    duration: Optional[float] = None,
) -> List[Segment]:
    out: List[Segment] = []
    last_start = 0.0
    for seg in sorted(raw_segments, key=lambda s: float(s.get("start") or 0.0)):
        text = (seg.get("text") or "").strip()
        if not text:
            continue
        start = max(float(seg.get("start") or 0.0), last_start)
        end = max(float(seg.get("end") or start), start)
        start, end = _clamp(start, end, duration)
        out.append(Segment(id=f"segment_{len(out)}", start=start, end=end, text=text, confidence=confidence))
        last_start = start
    return out


# ---------------- artifact cleanup ----------------
def strip_artifact_phrases(text: str, phrases: Sequence[str] = ARTIFACT_PHRASES) -> str:
    for phrase in phrases:
        text = re.sub(re.escape(phrase) + r"[.!?]*", " ", text, flags=re.IGNORECASE)
    return _WS.sub(" ", text).strip()


def split_sentences(text: str) -> List[str]:
    return [s.strip() for s in _SENTENCE_SPLIT.split(text) if s.strip()]


def clean_transcript(text: str, phrases: Sequence[str] = ARTIFACT_PHRASES) -> CleanupResult:
    sentences = split_sentences(strip_artifact_phrases(text or "", phrases))
    counts = Counter(_norm(s) for s in sentences)
    kept: List[str] = []
    removed: Set[str] = set()
    for s in sentences:
        key = _norm(s)
        if counts[key] > MAX_SENTENCE_REPEATS or len(s) < MIN_SENTENCE_CHARS:
            removed.add(key)
        else:
            kept.append(s)
    return CleanupResult(text=". ".join(kept), removed=removed)


def filter_segments(segments: Sequence[Segment], cleanup: CleanupResult) -> List[Segment]:
    """Apply a transcript-level cleanup to per-segment text; segments left empty are dropped."""
    out: List[Segment] = []
    for seg in segments:
        sentences = [
            s for s in split_sentences(strip_artifact_phrases(seg.text))
            if _norm(s) not in cleanup.removed and len(s) >= MIN_SENTENCE_CHARS
        ]
        if not sentences:
            continue
        out.append(
            Segment(
                id=f"segment_{len(out)}",
                start=seg.start,
                end=seg.end,
                text=". ".join(sentences),
                confidence=seg.confidence,
                speaker=seg.speaker,
            )
        )
    return out
