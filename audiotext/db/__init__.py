# audiotext/db/__init__.py
from .core import Base, create_tables, make_engine, make_session_factory
from .crud import (
    ActivityLogRepository,
    AudioFileRepository,
    ExportRepository,
    ProjectRepository,
    TranscriptionRepository,
    UserRepository,
    activity_out,
    audio_out,
    project_out,
    transcription_out,
    user_out,
)

__all__ = [
    "Base",
    "create_tables",
    "make_engine",
    "make_session_factory",
    "UserRepository",
    "AudioFileRepository",
    "TranscriptionRepository",
    "ActivityLogRepository",
    "ExportRepository",
    "ProjectRepository",
    "user_out",
    "audio_out",
    "project_out",
    "activity_out",
    "transcription_out",
]
