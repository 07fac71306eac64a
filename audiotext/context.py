# audiotext/context.py
from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from sqlalchemy.orm import sessionmaker

from audiotext.config import Settings
from audiotext.kv import KeyValueStore
from audiotext.ratelimit import RateLimiter
from audiotext.sessions import SessionService
from audiotext.storage import ObjectStorage

if TYPE_CHECKING:
    from audiotext.asr.llm import LLMClient
    from audiotext.asr.pipeline import TranscriptionPipeline
    from audiotext.billing import StripeClient
    from audiotext.security import TokenService


@dataclass
class AppContext:
    """Everything a handler needs, built once per app in ``create_app``."""

    settings: Settings
    kv: KeyValueStore
    tokens: "TokenService"
    sessions: SessionService
    storage: ObjectStorage
    pipeline: "TranscriptionPipeline"
    llm: "LLMClient"
    billing: "StripeClient"
    rate_limiter: RateLimiter
    session_factory: sessionmaker
