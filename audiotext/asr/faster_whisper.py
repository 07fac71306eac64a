# audiotext/asr/faster_whisper.py
from __future__ import annotations

import io
import logging
import os
from typing import Any, Dict, List, Optional

from starlette.concurrency import run_in_threadpool

from audiotext.errors import UpstreamError

log = logging.getLogger(__name__)


class FasterWhisperEngine:
    """
    Local fallback: faster-whisper on this host.

    The model is loaded lazily on first use. Silero VAD stays off unless
    FW_DISABLE_VAD=0 because its onnx model fails to load on some platforms.
    """

    name = "local"

    def __init__(
        self,
        model_name: str,
        device: Optional[str] = None,
        compute_type: Optional[str] = None,
    ) -> None:
        self.model_name = model_name
        self.device = device or "cpu"
        self.compute_type = compute_type or "int8"
        self._model = None

    def _load(self):
        if self._model is None:
            try:
                from faster_whisper import WhisperModel
            except ImportError as e:
                raise UpstreamError(
                    "faster-whisper is not installed; install the 'local' extra to use FALLBACK_ENGINE=local"
                ) from e
            self._model = WhisperModel(self.model_name, device=self.device, compute_type=self.compute_type)
            log.info("[faster-whisper] loaded %s (%s/%s)", self.model_name, self.device, self.compute_type)
        return self._model

    def transcribe_sync(self, audio: bytes, language: Optional[str] = None) -> Dict[str, Any]:
        model = self._load()
        vad_disabled = os.getenv("FW_DISABLE_VAD", "1") == "1"
        seg_iter, info = model.transcribe(
            io.BytesIO(audio),
            language=None if (language or "auto") == "auto" else language,
            vad_filter=not vad_disabled,
        )

        segments: List[Dict[str, Any]] = []
        last_end = 0.0
        for s in seg_iter:
            st = float(getattr(s, "start", 0.0) or 0.0)
            en = float(getattr(s, "end", st) or st)
            last_end = max(last_end, en)
            segments.append({"start": st, "end": en, "text": (getattr(s, "text", "") or "").strip()})

        return {
            "text": " ".join(seg["text"] for seg in segments).strip(),
            "segments": segments,
            "words": [],
            "language": getattr(info, "language", None) or None,
            "duration_sec": float(getattr(info, "duration", last_end) or last_end),
        }

    async def transcribe(self, audio: bytes, *, language: Optional[str] = None) -> Dict[str, Any]:
        try:
            return await run_in_threadpool(self.transcribe_sync, audio, language)
        except UpstreamError:
            raise
        except Exception as e:
            log.exception("[faster-whisper] transcription failed")
            raise UpstreamError(f"faster-whisper failed: {type(e).__name__}: {e}") from e
