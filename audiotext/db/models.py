# audiotext/db/models.py
from __future__ import annotations

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON, Boolean, Column, DateTime, Enum, Float, ForeignKey, Integer, String, Text
)
from sqlalchemy.orm import relationship

from .core import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Role(str, enum.Enum):
    student = "student"
    professional = "professional"
    copywriter = "copywriter"
    video_editor = "video_editor"
    admin = "admin"
    subscriber = "subscriber"
    enterprise = "enterprise"


# roles a visitor may pick on the public registration form
SELF_SERVICE_ROLES = (Role.student, Role.professional, Role.copywriter, Role.video_editor)


class PlanType(str, enum.Enum):
    free = "free"
    pro = "pro"
    enterprise = "enterprise"


class AudioStatus(str, enum.Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


class TranscriptionStatus(str, enum.Enum):
    processing = "processing"
    completed = "completed"
    failed = "failed"


class User(Base):
    __tablename__ = "users"
    id = Column(String(36), primary_key=True, default=_uuid)

    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(100), nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(Enum(Role, native_enum=False, length=32), default=Role.student, nullable=False)
    avatar = Column(String(1024), nullable=True)

    email_verified = Column(Boolean, default=False, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    last_login = Column(DateTime(timezone=True), nullable=True)

    # Billing linkage
    stripe_customer_id = Column(String(255), nullable=True)
    subscription_status = Column(String(32), default="free", nullable=True)
    subscription_id = Column(String(255), nullable=True)
    plan_type = Column(Enum(PlanType, native_enum=False, length=16), default=PlanType.free, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    audio_files = relationship("AudioFile", back_populates="owner", cascade="all, delete-orphan")
    projects = relationship("Project", back_populates="owner", cascade="all, delete-orphan")


class Project(Base):
    __tablename__ = "projects"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)

    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    tags = Column(JSON, default=list, nullable=False)
    is_shared = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
    last_accessed_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    owner = relationship("User", back_populates="projects")
    audio_files = relationship("AudioFile", back_populates="project")


class AudioFile(Base):
    __tablename__ = "audio_files"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    project_id = Column(String(36), ForeignKey("projects.id"), index=True, nullable=True)

    filename = Column(String(512), nullable=False)  # storage key
    original_name = Column(String(512), nullable=False)
    size = Column(Integer, default=0, nullable=False)
    duration = Column(Float, nullable=True)
    mime_type = Column(String(128), default="application/octet-stream", nullable=False)
    status = Column(Enum(AudioStatus, native_enum=False, length=16), default=AudioStatus.processing, nullable=False)
    error = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    owner = relationship("User", back_populates="audio_files")
    project = relationship("Project", back_populates="audio_files")
    transcription = relationship(
        "Transcription", back_populates="audio_file", uselist=False, cascade="all, delete-orphan"
    )


class Transcription(Base):
    __tablename__ = "transcriptions"
    id = Column(String(36), primary_key=True, default=_uuid)
    audio_file_id = Column(String(36), ForeignKey("audio_files.id"), unique=True, nullable=False)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)

    text = Column(Text, default="", nullable=False)
    edited_text = Column(Text, nullable=True)
    confidence = Column(Float, default=0.0, nullable=False)
    language = Column(String(32), default="en", nullable=False)
    status = Column(
        Enum(TranscriptionStatus, native_enum=False, length=16),
        default=TranscriptionStatus.processing,
        nullable=False,
    )
    segments = Column(JSON, default=list, nullable=False)
    engine = Column(String(64), default="", nullable=False)
    last_edited_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    audio_file = relationship("AudioFile", back_populates="transcription")


class ActivityLog(Base):
    __tablename__ = "activity_log"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String(64), nullable=False)
    description = Column(String(512), default="", nullable=False)
    meta = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class Export(Base):
    __tablename__ = "exports"
    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    transcription_id = Column(String(36), ForeignKey("transcriptions.id"), nullable=False)
    format = Column(String(16), nullable=False)
    status = Column(String(16), default="completed", nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
