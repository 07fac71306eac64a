# audiotext/asr/whisper_api.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from audiotext.errors import UpstreamError

log = logging.getLogger(__name__)


class WhisperApiClient:
    """
    Primary path: OpenAI-compatible ``/audio/transcriptions`` with word timestamps.
    Any non-2xx, transport error or unparsable body raises UpstreamError so the
    pipeline can fall back.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        model: str = "whisper-1",
        timeout: float = 120.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def transcribe(
        self,
        audio: bytes,
        *,
        filename: str,
        mime_type: str = "application/octet-stream",
        language: Optional[str] = None,
    ) -> Dict[str, Any]:
        if not self.configured:
            raise UpstreamError("Whisper API key not configured")

        data: Dict[str, Any] = {
            "model": self.model,
            "response_format": "verbose_json",
            "timestamp_granularities[]": "word",
        }
        if language and language != "auto":
            data["language"] = language
        files = {"file": (filename or "audio", audio, mime_type)}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/audio/transcriptions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    data=data,
                    files=files,
                )
        except httpx.HTTPError as e:
            raise UpstreamError(f"Whisper API unreachable: {type(e).__name__}: {e}") from e

        if resp.status_code // 100 != 2:
            raise UpstreamError(f"Whisper API error: {resp.status_code} - {resp.text[:300]}")
        try:
            payload = resp.json()
        except ValueError as e:
            raise UpstreamError("Whisper API returned a non-JSON body") from e
        log.info(
            "[whisper-api] ok model=%s lang=%s words=%d",
            self.model, payload.get("language"), len(payload.get("words") or []),
        )
        return payload
