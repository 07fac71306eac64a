# audiotext/routers/admin.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from audiotext.context import AppContext
from audiotext.db.crud import ActivityLogRepository, UserRepository, user_out
from audiotext.db.models import Role
from audiotext.errors import NotFoundError, ValidationFailure
from audiotext.responses import ok
from audiotext.security import AuthContext, get_context, get_db, require_role

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


class UserPatch(BaseModel):
    role: Optional[Role] = None
    isActive: Optional[bool] = None


@router.get("/users")
def list_users(
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    _: AuthContext = Depends(require_role(Role.admin)),
):
    users = UserRepository(db).list(offset=offset, limit=min(limit, 200))
    return ok({"users": [user_out(u) for u in users]})


@router.patch("/users/{user_id}")
def update_user(
    user_id: str,
    body: UserPatch,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    admin: AuthContext = Depends(require_role(Role.admin)),
):
    users = UserRepository(db)
    user = users.find_by_id(user_id)
    if user is None:
        raise NotFoundError("User not found")
    if user.id == admin.user.id and (body.isActive is False or (body.role and body.role != Role.admin)):
        raise ValidationFailure("Admins cannot demote or deactivate themselves")

    changes = {}
    if body.role is not None:
        changes["role"] = body.role
    if body.isActive is not None:
        changes["is_active"] = body.isActive
    if not changes:
        raise ValidationFailure("Nothing to update")

    user = users.update(user, **changes)
    # a role change or deactivation invalidates tokens that still carry the old claims
    revoked = ctx.sessions.delete_all(user.id)
    ActivityLogRepository(db).record(
        admin.user.id,
        "admin_update_user",
        f"Updated user {user.id}",
        {"targetUserId": user.id, "role": user.role.value, "isActive": user.is_active},
    )
    log.info("admin=%s updated user=%s (revoked %d sessions)", admin.user.id, user.id, revoked)
    return ok({"user": user_out(user)})
