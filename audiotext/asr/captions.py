# audiotext/asr/captions.py
from __future__ import annotations

import io
from typing import Any, Dict, Iterable, List


def format_timestamp(seconds: float, *, srt: bool = False) -> str:
    """HH:MM:SS.mmm (WebVTT) or HH:MM:SS,mmm (SRT); milliseconds are truncated, not rounded."""
    t = max(0.0, float(seconds or 0.0))
    total_ms = int(t * 1000)
    h, rem = divmod(total_ms, 3_600_000)
    m, rem = divmod(rem, 60_000)
    s, ms = divmod(rem, 1000)
    sep = "," if srt else "."
    return f"{h:02d}:{m:02d}:{s:02d}{sep}{ms:03d}"


def _cues(segments: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    ordered = sorted(segments, key=lambda s: float(s.get("start") or 0.0))
    return [s for s in ordered if (s.get("text") or "").strip()]


def _write_cues(buf: io.StringIO, segments: Iterable[Dict[str, Any]], *, srt: bool) -> None:
    for i, seg in enumerate(_cues(segments), 1):
        start = format_timestamp(seg.get("start") or 0.0, srt=srt)
        end = format_timestamp(seg.get("end") or 0.0, srt=srt)
        buf.write(f"{i}\n{start} --> {end}\n{seg['text'].strip()}\n\n")


def to_vtt(segments: Iterable[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    buf.write("WEBVTT\n\n")
    _write_cues(buf, segments, srt=False)
    return buf.getvalue()


def to_srt(segments: Iterable[Dict[str, Any]]) -> str:
    buf = io.StringIO()
    _write_cues(buf, segments, srt=True)
    return buf.getvalue()
