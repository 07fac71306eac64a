# audiotext/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import List, Optional

from dotenv import load_dotenv

# Load .env early so every os.getenv below sees it
load_dotenv()

# -------------------------------------------------------------------
# Everything is env-driven. Useful overrides:
#   AUDIOTEXT_SECRET_KEY -> JWT signing secret (must be changed in prod)
#   AUDIOTEXT_DB_URL     -> full SQLAlchemy URL (default: sqlite file in ./data)
#   REDIS_URL            -> KV store; unset = in-process store (dev only)
#   WHISPER_API_URL      -> OpenAI-compatible base URL for the primary path
#   FALLBACK_ENGINE      -> "workers-ai" | "local" | "off"
# -------------------------------------------------------------------

_BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DATA_DIR = os.path.join(_BASE_DIR, "data")

SESSION_TTL_SEC = 7 * 24 * 60 * 60


def _bool_env(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def _list_env(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [x.strip() for x in raw.split(",") if x.strip()]


@dataclass(frozen=True)
class Settings:
    environment: str = "development"
    secret_key: str = "CHANGE_ME_DEV_SECRET"
    token_lifetime_sec: int = SESSION_TTL_SEC
    session_ttl_sec: int = SESSION_TTL_SEC
    cookie_secure: bool = True

    database_url: str = "sqlite:///" + os.path.join(_DATA_DIR, "audiotext.db").replace("\\", "/")
    redis_url: Optional[str] = None
    storage_dir: str = os.path.join(_DATA_DIR, "uploads")
    max_upload_bytes: int = 100 * 1024 * 1024

    # primary transcription path (OpenAI-compatible Whisper endpoint)
    whisper_api_url: str = "https://api.openai.com/v1"
    whisper_api_key: Optional[str] = None
    whisper_model: str = "whisper-1"

    # fallback engine
    fallback_engine: str = "workers-ai"
    workers_ai_url: Optional[str] = None
    workers_ai_token: Optional[str] = None
    faster_whisper_model: str = "small"
    faster_whisper_device: str = "cpu"
    faster_whisper_compute_type: str = "int8"

    # LLM post-processing
    llm_api_url: str = "https://api.openai.com/v1"
    llm_api_key: Optional[str] = None
    llm_model: str = "gpt-4o-mini"

    http_timeout_sec: float = 120.0

    # billing
    stripe_secret_key: Optional[str] = None
    stripe_price_pro: Optional[str] = None
    stripe_price_enterprise: Optional[str] = None

    frontend_url: str = "http://localhost:5173"
    cors_origins: List[str] = field(
        default_factory=lambda: ["http://localhost:5173", "http://localhost:3000"]
    )

    rate_limit_enabled: bool = True
    rate_limit_requests: int = 100
    rate_limit_auth_requests: int = 10
    rate_limit_window_sec: int = 60

    # SMTP (password reset mail); unset host/user = log-only
    smtp_host: Optional[str] = None
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_starttls: bool = True
    mail_from: str = "AudioText <no-reply@localhost>"

    @property
    def is_production(self) -> bool:
        return self.environment.lower() in {"prod", "production"}


def load_settings() -> Settings:
    """Build Settings from the process environment."""
    defaults = Settings()
    settings = Settings(
        environment=os.getenv("AUDIOTEXT_ENV", defaults.environment),
        secret_key=os.getenv("AUDIOTEXT_SECRET_KEY", defaults.secret_key),
        token_lifetime_sec=int(os.getenv("AUDIOTEXT_TOKEN_SEC", str(defaults.token_lifetime_sec))),
        session_ttl_sec=int(os.getenv("AUDIOTEXT_SESSION_SEC", str(defaults.session_ttl_sec))),
        cookie_secure=_bool_env("COOKIE_SECURE", default=True),
        database_url=os.getenv("AUDIOTEXT_DB_URL", defaults.database_url),
        redis_url=os.getenv("REDIS_URL") or None,
        storage_dir=os.path.abspath(os.getenv("STORAGE_DIR", defaults.storage_dir)),
        max_upload_bytes=int(os.getenv("MAX_UPLOAD_BYTES", str(defaults.max_upload_bytes))),
        whisper_api_url=os.getenv("WHISPER_API_URL", defaults.whisper_api_url).rstrip("/"),
        whisper_api_key=os.getenv("WHISPER_API_KEY") or os.getenv("OPENAI_API_KEY") or None,
        whisper_model=os.getenv("WHISPER_MODEL", defaults.whisper_model),
        fallback_engine=os.getenv("FALLBACK_ENGINE", defaults.fallback_engine).lower(),
        workers_ai_url=os.getenv("WORKERS_AI_URL") or None,
        workers_ai_token=os.getenv("WORKERS_AI_TOKEN") or None,
        faster_whisper_model=os.getenv("FASTER_WHISPER_MODEL", defaults.faster_whisper_model),
        faster_whisper_device=os.getenv("FASTER_WHISPER_DEVICE", defaults.faster_whisper_device).lower(),
        faster_whisper_compute_type=os.getenv(
            "FASTER_WHISPER_COMPUTE_TYPE", defaults.faster_whisper_compute_type
        ).lower(),
        llm_api_url=os.getenv("LLM_API_URL", defaults.llm_api_url).rstrip("/"),
        llm_api_key=os.getenv("LLM_API_KEY") or os.getenv("OPENAI_API_KEY") or None,
        llm_model=os.getenv("LLM_MODEL", defaults.llm_model),
        http_timeout_sec=float(os.getenv("HTTP_TIMEOUT_SEC", str(defaults.http_timeout_sec))),
        stripe_secret_key=os.getenv("STRIPE_SECRET_KEY") or None,
        stripe_price_pro=os.getenv("STRIPE_PRICE_PRO") or None,
        stripe_price_enterprise=os.getenv("STRIPE_PRICE_ENTERPRISE") or None,
        frontend_url=os.getenv("FRONTEND_URL", defaults.frontend_url),
        cors_origins=_list_env("CORS_ORIGINS", ",".join(defaults.cors_origins)),
        rate_limit_enabled=_bool_env("RATE_LIMIT_ENABLED", default=True),
        rate_limit_requests=int(os.getenv("RATE_LIMIT_REQUESTS", str(defaults.rate_limit_requests))),
        rate_limit_auth_requests=int(
            os.getenv("RATE_LIMIT_AUTH_REQUESTS", str(defaults.rate_limit_auth_requests))
        ),
        rate_limit_window_sec=int(os.getenv("RATE_LIMIT_WINDOW_SEC", str(defaults.rate_limit_window_sec))),
        smtp_host=os.getenv("SMTP_HOST") or None,
        smtp_port=int(os.getenv("SMTP_PORT", str(defaults.smtp_port))),
        smtp_username=os.getenv("SMTP_USERNAME") or None,
        smtp_password=os.getenv("SMTP_PASSWORD") or None,
        smtp_starttls=_bool_env("SMTP_STARTTLS", default=True),
        mail_from=os.getenv("MAIL_FROM", defaults.mail_from),
    )
    if settings.is_production and settings.secret_key == defaults.secret_key:
        raise RuntimeError(
            "AUDIOTEXT_SECRET_KEY must be set to a strong value; the default placeholder is not allowed."
        )
    return settings
