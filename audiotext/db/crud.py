# audiotext/db/crud.py
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import delete, desc, select, update
from sqlalchemy.orm import Session

from .models import (
    ActivityLog, AudioFile, AudioStatus, Export, Project, Role, Transcription,
    TranscriptionStatus, User, utcnow,
)


def iso(dt: Optional[datetime]) -> Optional[str]:
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.isoformat(timespec="seconds").replace("+00:00", "Z")


# ---------------- Users ----------------
class UserRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        email: str,
        name: str,
        password_hash: str,
        role: Role = Role.student,
        avatar: Optional[str] = None,
        email_verified: bool = False,
    ) -> User:
        user = User(
            email=email.strip().lower(),
            name=name.strip(),
            password_hash=password_hash,
            role=role,
            avatar=avatar,
            email_verified=email_verified,
        )
        self.db.add(user)
        self.db.commit()
        self.db.refresh(user)
        return user

    def find_by_id(self, user_id: str) -> Optional[User]:
        return self.db.get(User, user_id)

    def find_by_email(self, email: str) -> Optional[User]:
        stmt = select(User).where(User.email == email.strip().lower())
        return self.db.execute(stmt).scalar_one_or_none()

    def list(self, *, offset: int = 0, limit: int = 50) -> List[User]:
        stmt = select(User).order_by(desc(User.created_at)).offset(max(0, offset)).limit(limit)
        return list(self.db.execute(stmt).scalars())

    def update(self, user: User, **changes: Any) -> User:
        for key, value in changes.items():
            setattr(user, key, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    def touch_login(self, user: User) -> User:
        return self.update(user, last_login=utcnow())


def user_out(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "name": user.name,
        "role": user.role.value if isinstance(user.role, Role) else user.role,
        "avatar": user.avatar,
        "emailVerified": bool(user.email_verified),
        "isActive": bool(user.is_active),
        "planType": user.plan_type.value if user.plan_type is not None else None,
        "subscriptionStatus": user.subscription_status,
        "createdAt": iso(user.created_at),
        "lastLogin": iso(user.last_login),
    }


# ---------------- Audio files ----------------
class AudioFileRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        user_id: str,
        filename: str,
        original_name: str,
        size: int,
        mime_type: str,
        duration: Optional[float] = None,
        status: AudioStatus = AudioStatus.processing,
        project_id: Optional[str] = None,
    ) -> AudioFile:
        rec = AudioFile(
            user_id=user_id,
            project_id=project_id,
            filename=filename,
            original_name=original_name,
            size=size,
            mime_type=mime_type,
            duration=duration,
            status=status,
        )
        self.db.add(rec)
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def find_by_id(self, audio_id: str) -> Optional[AudioFile]:
        return self.db.get(AudioFile, audio_id)

    def find_by_user(
        self, user_id: str, *, project_id: Optional[str] = None, offset: int = 0, limit: int = 50
    ) -> List[AudioFile]:
        stmt = select(AudioFile).where(AudioFile.user_id == user_id)
        if project_id is not None:
            stmt = stmt.where(AudioFile.project_id == project_id)
        stmt = stmt.order_by(desc(AudioFile.created_at)).offset(max(0, offset)).limit(limit)
        return list(self.db.execute(stmt).scalars())

    def set_status(self, rec: AudioFile, status: AudioStatus, *, error: Optional[str] = None) -> AudioFile:
        rec.status = status
        rec.error = error
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def delete(self, rec: AudioFile) -> None:
        if rec.transcription is not None:
            self.db.execute(delete(Export).where(Export.transcription_id == rec.transcription.id))
        self.db.delete(rec)
        self.db.commit()


def audio_out(rec: AudioFile) -> Dict[str, Any]:
    tx = rec.transcription
    return {
        "id": rec.id,
        "filename": rec.filename,
        "originalName": rec.original_name,
        "size": rec.size,
        "duration": rec.duration,
        "mimeType": rec.mime_type,
        "url": f"/api/audio/{rec.id}/file",
        "projectId": rec.project_id,
        "status": rec.status.value,
        "error": rec.error,
        "transcriptionId": tx.id if tx is not None else None,
        "createdAt": iso(rec.created_at),
        "updatedAt": iso(rec.updated_at),
    }


# ---------------- Transcriptions ----------------
class TranscriptionRepository:
    def __init__(self, db: Session):
        self.db = db

    def upsert_for_audio(
        self,
        audio: AudioFile,
        *,
        text: str,
        confidence: float,
        language: str,
        segments: List[Dict[str, Any]],
        engine: str,
        status: TranscriptionStatus = TranscriptionStatus.completed,
    ) -> Transcription:
        rec = self.find_by_audio_file(audio.id)
        if rec is None:
            rec = Transcription(audio_file_id=audio.id, user_id=audio.user_id)
            self.db.add(rec)
        rec.text = text
        rec.confidence = confidence
        rec.language = language
        rec.segments = segments
        rec.engine = engine
        rec.status = status
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def find_by_id(self, tx_id: str) -> Optional[Transcription]:
        return self.db.get(Transcription, tx_id)

    def find_by_audio_file(self, audio_file_id: str) -> Optional[Transcription]:
        stmt = select(Transcription).where(Transcription.audio_file_id == audio_file_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_by_user(self, user_id: str, *, offset: int = 0, limit: int = 50) -> List[Transcription]:
        stmt = (
            select(Transcription)
            .where(Transcription.user_id == user_id)
            .order_by(desc(Transcription.created_at))
            .offset(max(0, offset))
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def set_status(self, rec: Transcription, status: TranscriptionStatus) -> Transcription:
        rec.status = status
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def update_edited_text(self, rec: Transcription, edited_text: str) -> Transcription:
        rec.edited_text = edited_text
        rec.last_edited_at = utcnow()
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def delete(self, rec: Transcription) -> None:
        self.db.execute(delete(Export).where(Export.transcription_id == rec.id))
        self.db.delete(rec)
        self.db.commit()


def transcription_out(rec: Transcription, *, include_segments: bool = True) -> Dict[str, Any]:
    out = {
        "id": rec.id,
        "audioFileId": rec.audio_file_id,
        "text": rec.text,
        "editedText": rec.edited_text,
        "confidence": rec.confidence,
        "language": rec.language,
        "status": rec.status.value,
        "engine": rec.engine,
        "lastEditedAt": iso(rec.last_edited_at),
        "createdAt": iso(rec.created_at),
        "updatedAt": iso(rec.updated_at),
    }
    if include_segments:
        out["segments"] = rec.segments or []
    return out


# ---------------- Projects ----------------
class ProjectRepository:
    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        *,
        user_id: str,
        name: str,
        description: Optional[str] = None,
        tags: Optional[List[str]] = None,
        is_shared: bool = False,
    ) -> Project:
        rec = Project(
            user_id=user_id,
            name=name.strip(),
            description=description,
            tags=list(tags or []),
            is_shared=is_shared,
        )
        self.db.add(rec)
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def find_by_id(self, project_id: str) -> Optional[Project]:
        return self.db.get(Project, project_id)

    def find_by_user(self, user_id: str, *, offset: int = 0, limit: int = 50) -> List[Project]:
        stmt = (
            select(Project)
            .where(Project.user_id == user_id)
            .order_by(desc(Project.last_accessed_at))
            .offset(max(0, offset))
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def update(self, rec: Project, **changes: Any) -> Project:
        for key, value in changes.items():
            setattr(rec, key, value)
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def touch(self, rec: Project) -> Project:
        rec.last_accessed_at = utcnow()
        self.db.commit()
        self.db.refresh(rec)
        return rec

    def delete(self, rec: Project) -> None:
        # audio files outlive their project
        self.db.execute(update(AudioFile).where(AudioFile.project_id == rec.id).values(project_id=None))
        self.db.delete(rec)
        self.db.commit()


def project_out(rec: Project) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "name": rec.name,
        "description": rec.description,
        "tags": rec.tags or [],
        "isShared": bool(rec.is_shared),
        "createdAt": iso(rec.created_at),
        "updatedAt": iso(rec.updated_at),
        "lastAccessedAt": iso(rec.last_accessed_at),
    }


# ---------------- Activity log / exports ----------------
class ActivityLogRepository:
    def __init__(self, db: Session):
        self.db = db

    def record(self, user_id: str, type_: str, description: str = "", meta: Optional[dict] = None) -> ActivityLog:
        entry = ActivityLog(user_id=user_id, type=type_, description=description, meta=meta)
        self.db.add(entry)
        self.db.commit()
        return entry

    def find_by_user(self, user_id: str, *, offset: int = 0, limit: int = 50) -> List[ActivityLog]:
        stmt = (
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(desc(ActivityLog.timestamp))
            .offset(max(0, offset))
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars())

    def delete_older_than(self, days: int, *, user_id: Optional[str] = None) -> int:
        """Drop entries older than ``days``; every user's when ``user_id`` is None."""
        stmt = delete(ActivityLog).where(ActivityLog.timestamp < utcnow() - timedelta(days=days))
        if user_id is not None:
            stmt = stmt.where(ActivityLog.user_id == user_id)
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount or 0


def activity_out(entry: ActivityLog) -> Dict[str, Any]:
    return {
        "id": entry.id,
        "type": entry.type,
        "description": entry.description,
        "metadata": entry.meta,
        "timestamp": iso(entry.timestamp),
    }


class ExportRepository:
    def __init__(self, db: Session):
        self.db = db

    def record(self, *, user_id: str, transcription_id: str, fmt: str) -> Export:
        rec = Export(user_id=user_id, transcription_id=transcription_id, format=fmt)
        self.db.add(rec)
        self.db.commit()
        return rec
