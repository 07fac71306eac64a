# audiotext/asr/llm.py
"""
LLM post-processing over an OpenAI-compatible chat/completions endpoint.

None of these calls raise: a failed enhance returns the input text, a failed
summary returns SUMMARY_FAILED and a failed topic extraction returns [].
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Literal, Optional, get_args

import httpx

log = logging.getLogger(__name__)

SummaryKind = Literal["brief", "detailed", "bullet_points"]
SUMMARY_KINDS = get_args(SummaryKind)
SUMMARY_FAILED = "Failed to generate summary"
MAX_TOPICS = 10

_ENHANCE_SYSTEM = (
    "You are a professional transcription editor. Your job is to improve transcriptions "
    "while maintaining accuracy and the original speaker's intent."
)
_SUMMARY_SYSTEM = (
    "You are a professional summarization assistant. Create clear, concise summaries "
    "that capture the essential information."
)
_TOPICS_SYSTEM = (
    "You are an expert at extracting key topics and entities from text. "
    "Focus on the most important and relevant terms."
)

_SUMMARY_PROMPTS: Dict[str, str] = {
    "brief": "Please provide a brief summary (2-3 sentences) of the following transcription:\n\n{text}",
    "detailed": (
        "Please provide a detailed summary with key points and main topics "
        "from the following transcription:\n\n{text}"
    ),
    "bullet_points": (
        "Please provide a bullet-point summary of the key points from the following transcription:\n\n{text}"
    ),
}


def _enhance_prompt(text: str, context: Optional[str]) -> str:
    ctx = f"\nContext: {context}" if context else ""
    return (
        "Please improve the following transcription by:\n"
        "1. Correcting any obvious speech-to-text errors\n"
        "2. Adding proper punctuation and capitalization\n"
        "3. Formatting it professionally\n"
        "4. Maintaining the original meaning and tone\n"
        f"{ctx}\n\n"
        f"Original transcription:\n{text}\n\n"
        "Improved transcription:"
    )


def parse_topics(raw: str) -> List[str]:
    topics = [t.strip() for t in (raw or "").split(",")]
    return [t for t in topics if t][:MAX_TOPICS]


class LLMClient:
    def __init__(
        self,
        base_url: str,
        api_key: Optional[str],
        *,
        model: str = "gpt-4o-mini",
        timeout: float = 60.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def _chat(self, system: str, prompt: str, *, max_tokens: int, temperature: float) -> Optional[str]:
        """Return the assistant message, or None on any failure."""
        if not self.configured:
            log.info("[llm] no API key configured; skipping")
            return None
        body: Dict[str, Any] = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": prompt},
            ],
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json=body,
                )
            resp.raise_for_status()
            content = resp.json()["choices"][0]["message"]["content"]
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
            log.warning("[llm] request failed: %s: %s", type(e).__name__, e)
            return None
        return (content or "").strip() or None

    async def enhance(self, text: str, context: Optional[str] = None) -> str:
        out = await self._chat(_ENHANCE_SYSTEM, _enhance_prompt(text, context), max_tokens=2048, temperature=0.3)
        return out or text

    async def summarize(self, text: str, kind: SummaryKind = "brief") -> str:
        if kind not in _SUMMARY_PROMPTS:
            raise ValueError(f"summary type must be one of {SUMMARY_KINDS}")
        out = await self._chat(
            _SUMMARY_SYSTEM, _SUMMARY_PROMPTS[kind].format(text=text), max_tokens=1024, temperature=0.3
        )
        return out or SUMMARY_FAILED

    async def extract_key_topics(self, text: str) -> List[str]:
        prompt = (
            "Extract the main topics, keywords, and important entities from the following transcription. "
            f"Return them as a comma-separated list:\n\n{text}\n\nKey topics and entities:"
        )
        out = await self._chat(_TOPICS_SYSTEM, prompt, max_tokens=256, temperature=0.2)
        return parse_topics(out or "")
