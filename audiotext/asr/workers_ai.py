# audiotext/asr/workers_ai.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from audiotext.errors import UpstreamError

log = logging.getLogger(__name__)


class WorkersAIEngine:
    """
    Edge Whisper model behind an HTTP "run" endpoint (Cloudflare Workers AI style).
    The audio goes up as a JSON array of byte values, which is what the model expects.
    """

    name = "workers-ai"

    def __init__(self, url: Optional[str], token: Optional[str], *, timeout: float = 120.0) -> None:
        self.url = url
        self.token = token
        self.timeout = timeout

    async def transcribe(self, audio: bytes, *, language: Optional[str] = None) -> Dict[str, Any]:
        if not self.url:
            raise UpstreamError("Workers AI endpoint not configured")
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(self.url, headers=headers, json={"audio": list(audio)})
        except httpx.HTTPError as e:
            raise UpstreamError(f"Workers AI unreachable: {type(e).__name__}: {e}") from e
        if resp.status_code // 100 != 2:
            raise UpstreamError(f"Workers AI error: {resp.status_code} - {resp.text[:300]}")
        try:
            body = resp.json()
        except ValueError as e:
            raise UpstreamError("Workers AI returned a non-JSON body") from e

        # Account-level REST API wraps the model output in {"result": ..., "success": ...}
        result = body.get("result", body) if isinstance(body, dict) else {}
        out: Dict[str, Any] = {
            "text": (result.get("text") or "").strip(),
            "words": result.get("words") or [],
            "segments": result.get("segments") or [],
            "language": result.get("language") or (language if language and language != "auto" else None),
            "duration_sec": result.get("duration"),
        }
        log.info("[workers-ai] ok chars=%d words=%d", len(out["text"]), len(out["words"]))
        return out
