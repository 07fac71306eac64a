# audiotext/routers/projects.py
from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from audiotext.db.crud import ActivityLogRepository, AudioFileRepository, ProjectRepository, audio_out, project_out
from audiotext.db.models import Project, Role
from audiotext.errors import AuthorizationError, NotFoundError, ValidationFailure
from audiotext.responses import ok
from audiotext.security import AuthContext, get_current_auth, get_db

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/projects", tags=["projects"])


# ---------- Schemas ----------
class ProjectBody(BaseModel):
    name: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    tags: List[str] = Field(default_factory=list, max_length=20)
    isShared: bool = False


class ProjectPatch(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)
    tags: Optional[List[str]] = Field(default=None, max_length=20)
    isShared: Optional[bool] = None


def owned_project(db: Session, project_id: str, auth: AuthContext) -> Project:
    rec = ProjectRepository(db).find_by_id(project_id)
    if rec is None:
        raise NotFoundError("Project not found")
    if rec.user_id != auth.user.id and auth.user.role != Role.admin.value:
        raise AuthorizationError("Forbidden")
    return rec


# ---------- Endpoints ----------
@router.post("")
def create_project(body: ProjectBody, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    rec = ProjectRepository(db).create(
        user_id=auth.user.id,
        name=body.name,
        description=body.description,
        tags=body.tags,
        is_shared=body.isShared,
    )
    ActivityLogRepository(db).record(auth.user.id, "project_create", f"Created project {rec.name}", {"projectId": rec.id})
    return ok({"project": project_out(rec)})


@router.get("")
def list_projects(
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    recs = ProjectRepository(db).find_by_user(auth.user.id, offset=offset, limit=min(limit, 200))
    return ok({"projects": [project_out(r) for r in recs]})


@router.get("/{project_id}")
def get_project(project_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    rec = ProjectRepository(db).touch(owned_project(db, project_id, auth))
    files = AudioFileRepository(db).find_by_user(rec.user_id, project_id=rec.id, limit=200)
    return ok({"project": project_out(rec), "audioFiles": [audio_out(f) for f in files]})


@router.patch("/{project_id}")
def update_project(
    project_id: str,
    body: ProjectPatch,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    rec = owned_project(db, project_id, auth)
    fields = {"name": "name", "description": "description", "tags": "tags", "isShared": "is_shared"}
    changes = {column: getattr(body, field) for field, column in fields.items() if field in body.model_fields_set}
    if changes.get("name") is None:
        changes.pop("name", None)
    if not changes:
        raise ValidationFailure("Nothing to update")
    rec = ProjectRepository(db).update(rec, **changes)
    return ok({"project": project_out(rec)})


@router.delete("/{project_id}")
def delete_project(project_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    rec = owned_project(db, project_id, auth)
    name = rec.name
    ProjectRepository(db).delete(rec)
    ActivityLogRepository(db).record(auth.user.id, "project_delete", f"Deleted project {name}")
    return ok(message="Project deleted")
