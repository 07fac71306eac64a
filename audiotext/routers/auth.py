# audiotext/routers/auth.py
from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

import aiosmtplib
from fastapi import APIRouter, Depends, Request, Response
from pydantic import BaseModel, EmailStr, Field
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audiotext.context import AppContext
from audiotext.db.crud import ActivityLogRepository, UserRepository, user_out
from audiotext.db.models import SELF_SERVICE_ROLES, Role, User
from audiotext.email_utils import password_reset_email, send_email
from audiotext.errors import AuthenticationError, ValidationFailure
from audiotext.passwords import hash_password, validate_password_strength, verify_password
from audiotext.responses import ok
from audiotext.security import (
    SESSION_COOKIE, AuthContext, get_context, get_current_auth, get_db, get_optional_auth, rate_limit,
)

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"], dependencies=[Depends(rate_limit("auth"))])

RESET_TTL_SEC = 60 * 60
RESET_MESSAGE = "If the email exists, a reset link has been sent"


def reset_key(token: str) -> str:
    return f"password_reset:{token}"


# ---------------- Schemas ----------------
class RegisterBody(BaseModel):
    email: EmailStr
    name: str = Field(min_length=2, max_length=100)
    password: str = Field(min_length=8, max_length=128)
    role: Role = Role.student


class LoginBody(BaseModel):
    email: EmailStr
    password: str = Field(min_length=1)


class ResetRequestBody(BaseModel):
    email: EmailStr


class ResetConfirmBody(BaseModel):
    token: str = Field(min_length=1)
    password: str = Field(min_length=8, max_length=128)


# ---------------- Helpers ----------------
def _set_session_cookie(response: Response, ctx: AppContext, session_id: str) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        session_id,
        max_age=ctx.settings.session_ttl_sec,
        path="/",
        secure=ctx.settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _clear_session_cookie(response: Response, ctx: AppContext) -> None:
    response.set_cookie(
        SESSION_COOKIE,
        "",
        max_age=0,
        path="/",
        secure=ctx.settings.cookie_secure,
        httponly=True,
        samesite="strict",
    )


def _start_session(response: Response, ctx: AppContext, user: User) -> dict:
    token = ctx.tokens.issue(user.id, user.email, user.role.value)
    session_id = ctx.sessions.create(user.id, token)
    _set_session_cookie(response, ctx, session_id)
    return ok({"user": user_out(user), "token": token})


# ---------------- Endpoints ----------------
@router.post("/register")
def register(
    body: RegisterBody,
    response: Response,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    if body.role not in SELF_SERVICE_ROLES:
        raise ValidationFailure(details=[{"field": "role", "message": f"Role {body.role.value} cannot be self-assigned"}])
    problems = validate_password_strength(body.password)
    if problems:
        raise ValidationFailure(details=[{"field": "password", "message": p} for p in problems])

    users = UserRepository(db)
    if users.find_by_email(body.email) is not None:
        raise ValidationFailure("User already exists with this email")

    user = users.create(
        email=body.email,
        name=body.name,
        password_hash=hash_password(body.password),
        role=body.role,
    )
    ActivityLogRepository(db).record(user.id, "register", "Account created")
    log.info("registered user=%s role=%s", user.id, user.role.value)
    return _start_session(response, ctx, user)


@router.post("/login")
def login(
    body: LoginBody,
    response: Response,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    users = UserRepository(db)
    user = users.find_by_email(body.email)
    # same message for unknown email, wrong password and disabled account
    if user is None or not verify_password(body.password, user.password_hash) or not user.is_active:
        raise AuthenticationError("Invalid email or password")

    users.touch_login(user)
    ActivityLogRepository(db).record(user.id, "login", "Signed in")
    return _start_session(response, ctx, user)


@router.post("/logout")
def logout(
    request: Request,
    response: Response,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: Optional[AuthContext] = Depends(get_optional_auth),
):
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        ctx.sessions.delete(session_id)
    if auth is not None:
        ActivityLogRepository(db).record(auth.user.id, "logout", "Signed out")
    _clear_session_cookie(response, ctx)
    return ok(message="Logged out successfully")


@router.post("/logout-all")
def logout_all(
    response: Response,
    ctx: AppContext = Depends(get_context),
    auth: AuthContext = Depends(get_current_auth),
):
    count = ctx.sessions.delete_all(auth.user.id)
    _clear_session_cookie(response, ctx)
    return ok({"sessionsRevoked": count}, message="Logged out of all sessions")


@router.get("/me")
def me(auth: AuthContext = Depends(get_current_auth)):
    return ok({"user": user_out(auth.record)})


@router.post("/refresh")
def refresh(request: Request, ctx: AppContext = Depends(get_context)):
    header = request.headers.get("Authorization") or ""
    if not header.startswith("Bearer "):
        raise AuthenticationError("Token required")
    new_token = ctx.tokens.refresh(header[len("Bearer "):].strip())
    if new_token is None:
        raise AuthenticationError("Invalid or expired token")
    return ok({"token": new_token})


def _issue_reset_token(ctx: AppContext, db: Session, email: str) -> Optional[Tuple[str, str, str]]:
    """Store a reset token for an active account; returns (user id, email, reset url) or None."""
    user = UserRepository(db).find_by_email(email)
    if user is None or not user.is_active:
        return None
    token = str(uuid.uuid4())
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=RESET_TTL_SEC)
    ctx.kv.put(
        reset_key(token),
        json.dumps({"userId": user.id, "email": user.email, "expiresAt": expires_at.isoformat()}),
        ttl=RESET_TTL_SEC,
    )
    reset_url = f"{ctx.settings.frontend_url.rstrip('/')}/reset-password?token={token}"
    return user.id, user.email, reset_url


@router.post("/reset-password")
async def request_password_reset(
    body: ResetRequestBody,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    issued = await run_in_threadpool(_issue_reset_token, ctx, db, body.email)
    # the response never reveals whether the account exists
    if issued is None:
        return ok(message=RESET_MESSAGE)

    user_id, email, reset_url = issued
    try:
        await send_email(ctx.settings, email, "Reset your AudioText password", password_reset_email(reset_url))
    except (aiosmtplib.SMTPException, OSError):
        log.exception("password reset mail to user=%s failed", user_id)
    return ok(message=RESET_MESSAGE)


@router.post("/reset-password/confirm")
def confirm_password_reset(
    body: ResetConfirmBody,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
):
    raw: Optional[str] = ctx.kv.get(reset_key(body.token))
    if not raw:
        raise ValidationFailure("Invalid or expired reset token")
    problems = validate_password_strength(body.password)
    if problems:
        raise ValidationFailure(details=[{"field": "password", "message": p} for p in problems])

    users = UserRepository(db)
    user = users.find_by_id(json.loads(raw)["userId"])
    if user is None or not user.is_active:
        ctx.kv.delete(reset_key(body.token))
        raise ValidationFailure("Invalid or expired reset token")

    users.update(user, password_hash=hash_password(body.password))
    ctx.kv.delete(reset_key(body.token))
    revoked = ctx.sessions.delete_all(user.id)
    ActivityLogRepository(db).record(user.id, "password_reset", "Password changed via reset link")
    log.info("password reset for user=%s (revoked %d sessions)", user.id, revoked)
    return ok(message="Password has been reset")
