# audiotext/main.py
from __future__ import annotations

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.concurrency import run_in_threadpool
from starlette.middleware.base import BaseHTTPMiddleware

from audiotext.asr.llm import LLMClient
from audiotext.asr.pipeline import TranscriptionPipeline
from audiotext.asr.registry import get_fallback_engine
from audiotext.asr.whisper_api import WhisperApiClient
from audiotext.billing import StripeClient
from audiotext.config import Settings, load_settings
from audiotext.context import AppContext
from audiotext.db import create_tables, make_engine, make_session_factory
from audiotext.errors import ApiError, RateLimitExceeded
from audiotext.kv import KeyValueStore, make_kv_store
from audiotext.ratelimit import RateLimiter
from audiotext.routers import activity, admin, audio, auth, billing, projects, transcriptions
from audiotext.security import TokenService
from audiotext.sessions import SessionService
from audiotext.storage import ObjectStorage

APP_NAME = "AudioText API"
APP_VERSION = "1.0.0"

# ---------------- Logging ----------------
logging.basicConfig(level=logging.INFO, format="%(levelname)s:%(name)s:%(message)s")
for noisy in ["httpx", "httpcore", "faster_whisper", "multipart", "python_multipart"]:
    logging.getLogger(noisy).setLevel(logging.WARNING)

log = logging.getLogger("audiotext")

RATE_LIMIT_EXEMPT = ("/api/health",)


# ---------------- Middleware ----------------
async def _log_requests(request: Request, call_next):
    t0 = time.time()
    try:
        resp = await call_next(request)
    except Exception:
        # traceback is logged by the 500 handler
        log.error("!! 500 %s %s (%.1f ms)", request.method, request.url.path, (time.time() - t0) * 1000)
        raise
    log.info("%s %s -> %d (%.1f ms)", request.method, request.url.path, resp.status_code, (time.time() - t0) * 1000)
    return resp


async def _rate_limit(request: Request, call_next):
    ctx: AppContext = request.app.state.ctx
    if (
        ctx.settings.rate_limit_enabled
        and request.method != "OPTIONS"
        and request.url.path not in RATE_LIMIT_EXEMPT
        # the counter lives in Redis; keep the blocking round trip off the loop
        and not await run_in_threadpool(
            ctx.rate_limiter.check_request, request, "api", ctx.settings.rate_limit_requests
        )
    ):
        return JSONResponse(RateLimitExceeded().to_body(), status_code=RateLimitExceeded.status_code)
    return await call_next(request)


# ---------------- Error rendering ----------------
async def _api_error(request: Request, exc: ApiError):
    if exc.status_code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(exc.to_body(), status_code=exc.status_code)


async def _http_error(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse({"error": detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def _validation_error(request: Request, exc: RequestValidationError):
    details = [
        {"loc": [str(p) for p in err.get("loc", ())], "msg": str(err.get("msg", "")), "type": err.get("type")}
        for err in exc.errors()
    ]
    return JSONResponse({"error": "Invalid input data", "details": details}, status_code=400)


async def _unhandled_error(request: Request, exc: Exception):
    log.exception("%s %s crashed", request.method, request.url.path, exc_info=exc)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ---------------- Factory ----------------
def build_context(
    settings: Settings,
    *,
    kv: Optional[KeyValueStore] = None,
    pipeline: Optional[TranscriptionPipeline] = None,
    llm: Optional[LLMClient] = None,
    billing_client: Optional[StripeClient] = None,
) -> AppContext:
    engine = make_engine(settings.database_url)
    create_tables(engine)
    kv = kv if kv is not None else make_kv_store(settings.redis_url)
    storage = ObjectStorage(settings.storage_dir)

    if pipeline is None:
        primary = None
        if settings.whisper_api_key:
            primary = WhisperApiClient(
                settings.whisper_api_url,
                settings.whisper_api_key,
                model=settings.whisper_model,
                timeout=settings.http_timeout_sec,
            )
        else:
            log.warning("WHISPER_API_KEY unset; every upload goes straight to the fallback engine")
        pipeline = TranscriptionPipeline(storage, primary, get_fallback_engine(settings))

    return AppContext(
        settings=settings,
        kv=kv,
        tokens=TokenService(settings.secret_key, lifetime_sec=settings.token_lifetime_sec),
        sessions=SessionService(kv, ttl=settings.session_ttl_sec),
        storage=storage,
        pipeline=pipeline,
        llm=llm or LLMClient(
            settings.llm_api_url, settings.llm_api_key, model=settings.llm_model, timeout=settings.http_timeout_sec
        ),
        billing=billing_client or StripeClient(
            settings.stripe_secret_key,
            prices={"pro": settings.stripe_price_pro, "enterprise": settings.stripe_price_enterprise},
            timeout=settings.http_timeout_sec,
        ),
        rate_limiter=RateLimiter(kv, window_sec=settings.rate_limit_window_sec),
        session_factory=make_session_factory(engine),
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    kv: Optional[KeyValueStore] = None,
    pipeline: Optional[TranscriptionPipeline] = None,
    llm: Optional[LLMClient] = None,
    billing_client: Optional[StripeClient] = None,
) -> FastAPI:
    settings = settings or load_settings()
    app = FastAPI(title=APP_NAME, version=APP_VERSION)
    app.state.ctx = build_context(settings, kv=kv, pipeline=pipeline, llm=llm, billing_client=billing_client)

    # added last = outermost: CORS answers preflights before anything else runs
    app.add_middleware(BaseHTTPMiddleware, dispatch=_rate_limit)
    app.add_middleware(BaseHTTPMiddleware, dispatch=_log_requests)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Cookie"],
        max_age=86400,
    )

    app.add_exception_handler(ApiError, _api_error)
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
    app.add_exception_handler(Exception, _unhandled_error)

    for module in (auth, audio, transcriptions, projects, activity, billing, admin):
        app.include_router(module.router)

    @app.get("/api/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(timespec="seconds").replace("+00:00", "Z"),
            "environment": settings.environment,
            "message": "AudioText API is running",
        }

    @app.get("/api/info")
    def info():
        return {
            "name": APP_NAME,
            "version": APP_VERSION,
            "description": "Professional Audio to Text Transcription Platform",
        }

    log.info("%s %s ready (env=%s)", APP_NAME, APP_VERSION, settings.environment)
    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("audiotext.main:create_app", factory=True, host="127.0.0.1", port=8000, log_level="info")
