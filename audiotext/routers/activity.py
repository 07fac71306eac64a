# audiotext/routers/activity.py
from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from audiotext.db.crud import ActivityLogRepository, activity_out
from audiotext.responses import ok
from audiotext.security import AuthContext, get_current_auth, get_db

router = APIRouter(prefix="/api/activity", tags=["activity"])


@router.get("")
def list_activity(
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    """The caller's own activity, newest first."""
    entries = ActivityLogRepository(db).find_by_user(auth.user.id, offset=offset, limit=min(limit, 200))
    return ok({"activities": [activity_out(e) for e in entries]})
