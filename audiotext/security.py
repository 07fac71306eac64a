from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, Optional

from fastapi import Depends, Request
from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.orm import Session

from audiotext.config import SESSION_TTL_SEC
from audiotext.context import AppContext
from audiotext.db.crud import UserRepository
from audiotext.db.models import Role, User
from audiotext.errors import AuthenticationError, AuthorizationError, RateLimitExceeded

log = logging.getLogger(__name__)

ALGORITHM = "HS256"
REFRESH_THRESHOLD_SEC = 24 * 60 * 60
SESSION_COOKIE = "session"


# ---- JWT ----
@dataclass(frozen=True)
class TokenClaims:
    user_id: str
    email: str
    role: str
    iat: int
    exp: int

    @property
    def remaining_sec(self) -> int:
        return self.exp - int(time.time())


class TokenService:
    def __init__(self, secret: str, *, lifetime_sec: int = SESSION_TTL_SEC, algorithm: str = ALGORITHM):
        self._secret = secret
        self.lifetime_sec = lifetime_sec
        self.algorithm = algorithm

    def issue(self, user_id: str, email: str, role: str) -> str:
        now = int(time.time())
        payload: Dict[str, Any] = {
            "userId": user_id,
            "email": email,
            "role": role,
            "iat": now,
            "exp": now + self.lifetime_sec,
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> Optional[TokenClaims]:
        """Signature + expiry check. ``None`` for any failure; the reason is only logged."""
        try:
            data = jwt.decode(token, self._secret, algorithms=[self.algorithm])
        except ExpiredSignatureError:
            log.debug("token rejected: expired")
            return None
        except JWTError as e:
            log.debug("token rejected: %s", e)
            return None
        try:
            claims = TokenClaims(
                user_id=str(data["userId"]),
                email=str(data["email"]),
                role=str(data["role"]),
                iat=int(data["iat"]),
                exp=int(data["exp"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            log.debug("token rejected: bad claims (%s)", e)
            return None
        # jose skips the exp check when the claim is missing; ours is mandatory
        if claims.exp < int(time.time()):
            return None
        return claims

    def refresh(self, token: str) -> Optional[str]:
        claims = self.verify(token)
        if claims is None:
            return None
        if claims.remaining_sec > REFRESH_THRESHOLD_SEC:
            return token
        return self.issue(claims.user_id, claims.email, claims.role)


# ---- request-scoped dependencies ----
def get_context(request: Request) -> AppContext:
    return request.app.state.ctx


def get_db(ctx: AppContext = Depends(get_context)) -> Iterator[Session]:
    db = ctx.session_factory()
    try:
        yield db
    finally:
        db.close()


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str
    role: str


@dataclass(frozen=True)
class AuthSession:
    id: str
    token: str


@dataclass(frozen=True)
class AuthContext:
    user: AuthUser
    session: AuthSession
    record: User


def _bearer_token(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization")
    if header and header.startswith("Bearer "):
        return header[len("Bearer "):].strip() or None
    return None


def _resolve(request: Request, ctx: AppContext, db: Session) -> AuthContext:
    """Bearer header first, then the session cookie. Raises AuthenticationError on any failure."""
    header = request.headers.get("Authorization")
    session_id = request.cookies.get(SESSION_COOKIE)
    if not header and not session_id:
        raise AuthenticationError()

    token = _bearer_token(request)
    if token is None:
        if not session_id:
            raise AuthenticationError("Authentication failed")
        session = ctx.sessions.get(session_id)
        if session is None:
            raise AuthenticationError("Authentication failed")
        token = session.token
    else:
        session_id = None

    claims = ctx.tokens.verify(token)
    if claims is None:
        raise AuthenticationError("Authentication failed")

    user = UserRepository(db).find_by_id(claims.user_id)
    if user is None or not user.is_active:
        raise AuthenticationError("Authentication failed")

    role = user.role.value if isinstance(user.role, Role) else str(user.role)
    return AuthContext(
        user=AuthUser(id=user.id, email=user.email, role=role),
        session=AuthSession(id=session_id or "", token=token),
        record=user,
    )


def get_current_auth(
    request: Request,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> AuthContext:
    try:
        auth = _resolve(request, ctx, db)
    except AuthenticationError:
        raise
    except Exception:
        log.exception("Auth resolution failed")
        raise AuthenticationError("Authentication failed")
    request.state.auth = auth
    return auth


def get_optional_auth(
    request: Request,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
) -> Optional[AuthContext]:
    try:
        auth = _resolve(request, ctx, db)
    except AuthenticationError:
        return None
    except Exception:
        log.exception("Optional auth resolution failed")
        return None
    request.state.auth = auth
    return auth


# ---- role gating ----
def require_role(*roles: Role | str) -> Callable[..., AuthContext]:
    """
    Usage: auth: AuthContext = Depends(require_role(Role.admin))
    """
    allowed = {r.value if isinstance(r, Role) else str(r) for r in roles}

    def _checker(auth: AuthContext = Depends(get_current_auth)) -> AuthContext:
        if auth.user.role not in allowed:
            raise AuthorizationError()
        return auth

    return _checker


# ---- rate limiting ----
def rate_limit(scope: str) -> Callable[..., None]:
    """Per-router limit on top of the global one, e.g. ``dependencies=[Depends(rate_limit("auth"))]``."""

    def _checker(request: Request, ctx: AppContext = Depends(get_context)) -> None:
        settings = ctx.settings
        if not settings.rate_limit_enabled:
            return
        limit = settings.rate_limit_auth_requests if scope == "auth" else settings.rate_limit_requests
        if not ctx.rate_limiter.check_request(request, scope, limit):
            raise RateLimitExceeded()

    return _checker
