# audiotext/routers/audio.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Response, UploadFile
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audiotext.asr.pipeline import TranscriptionResult
from audiotext.context import AppContext
from audiotext.db.crud import (
    ActivityLogRepository, AudioFileRepository, TranscriptionRepository, audio_out, transcription_out,
)
from audiotext.db.models import AudioFile, AudioStatus, Role, TranscriptionStatus
from audiotext.errors import AuthorizationError, NotFoundError, StorageError, TranscriptionError, ValidationFailure
from audiotext.responses import ok
from audiotext.routers.projects import owned_project
from audiotext.security import AuthContext, get_context, get_current_auth, get_db
from audiotext.storage import make_storage_key

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/audio", tags=["audio"])

ALLOWED_PREFIXES = ("audio/", "video/")
JOB_CRASHED = "Transcription failed unexpectedly"


def _owned_audio(db: Session, audio_id: str, auth: AuthContext) -> AudioFile:
    rec = AudioFileRepository(db).find_by_id(audio_id)
    if rec is None:
        raise NotFoundError("Audio file not found")
    if rec.user_id != auth.user.id and auth.user.role != Role.admin.value:
        raise AuthorizationError("Forbidden")
    return rec


def _job_input(ctx: AppContext, audio_id: str) -> Optional[Dict[str, Any]]:
    db = ctx.session_factory()
    try:
        rec = AudioFileRepository(db).find_by_id(audio_id)
        if rec is None:
            return None
        return {
            "key": rec.filename,
            "filename": rec.original_name,
            "mime_type": rec.mime_type,
            "duration": rec.duration,
        }
    finally:
        db.close()


def _save_result(ctx: AppContext, audio_id: str, result: TranscriptionResult) -> None:
    db = ctx.session_factory()
    try:
        audios = AudioFileRepository(db)
        rec = audios.find_by_id(audio_id)
        if rec is None:
            log.warning("[job] audio %s deleted while processing; result dropped", audio_id)
            return
        tx = TranscriptionRepository(db).upsert_for_audio(
            rec,
            text=result.text,
            confidence=result.confidence,
            language=result.language,
            segments=result.segment_dicts(),
            engine=result.engine,
        )
        if rec.duration is None and result.duration:
            rec.duration = result.duration
        audios.set_status(rec, AudioStatus.completed)
        ActivityLogRepository(db).record(
            rec.user_id,
            "transcription",
            f"Transcribed {rec.original_name}",
            {"audioFileId": rec.id, "transcriptionId": tx.id, "engine": result.engine},
        )
    finally:
        db.close()


def _mark_failed(ctx: AppContext, audio_id: str, message: str) -> None:
    db = ctx.session_factory()
    try:
        audios = AudioFileRepository(db)
        rec = audios.find_by_id(audio_id)
        if rec is None:
            return
        audios.set_status(rec, AudioStatus.failed, error=message)
        if rec.transcription is not None:
            TranscriptionRepository(db).set_status(rec.transcription, TranscriptionStatus.failed)
    finally:
        db.close()


async def run_transcription(ctx: AppContext, audio_id: str, language: Optional[str] = None) -> None:
    """
    Background job: run the pipeline for one AudioFile and persist the outcome.

    DB work happens in the threadpool with sessions of its own; the request's
    session is closed by the time this runs. Whatever goes wrong, the file
    leaves the processing state.
    """
    job = await run_in_threadpool(_job_input, ctx, audio_id)
    if job is None:
        log.warning("[job] audio %s vanished before processing", audio_id)
        return
    try:
        result = await ctx.pipeline.run(
            job["key"],
            filename=job["filename"],
            mime_type=job["mime_type"],
            duration=job["duration"],
            language=language,
        )
        await run_in_threadpool(_save_result, ctx, audio_id, result)
    except (TranscriptionError, StorageError) as e:
        log.error("[job] audio %s failed: %s", audio_id, e)
        await run_in_threadpool(_mark_failed, ctx, audio_id, str(e))
    except Exception:
        log.exception("[job] audio %s crashed", audio_id)
        await run_in_threadpool(_mark_failed, ctx, audio_id, JOB_CRASHED)


def _store_upload(
    ctx: AppContext,
    db: Session,
    auth: AuthContext,
    *,
    data: bytes,
    original_name: str,
    mime_type: str,
    duration: Optional[float],
    project_id: Optional[str],
) -> AudioFile:
    if project_id:
        owned_project(db, project_id, auth)
    key = make_storage_key(auth.user.id, original_name)
    size = ctx.storage.put(key, data)
    rec = AudioFileRepository(db).create(
        user_id=auth.user.id,
        project_id=project_id,
        filename=key,
        original_name=original_name,
        size=size,
        mime_type=mime_type,
        duration=duration,
        status=AudioStatus.processing,
    )
    ActivityLogRepository(db).record(
        auth.user.id, "upload", f"Uploaded {original_name}", {"audioFileId": rec.id, "size": size}
    )
    return rec


@router.post("/upload")
async def upload_audio(
    background: BackgroundTasks,
    file: UploadFile = File(...),
    duration: Optional[float] = Form(None),
    language: Optional[str] = Form(None),
    projectId: Optional[str] = Form(None),
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    mime_type = file.content_type or "application/octet-stream"
    if not mime_type.startswith(ALLOWED_PREFIXES):
        raise ValidationFailure("Only audio or video files are supported")

    data = await file.read()
    if not data:
        raise ValidationFailure("Uploaded file is empty")
    if len(data) > ctx.settings.max_upload_bytes:
        raise ValidationFailure(f"File too large (max {ctx.settings.max_upload_bytes} bytes)")

    rec = await run_in_threadpool(
        _store_upload,
        ctx,
        db,
        auth,
        data=data,
        original_name=file.filename or "audio",
        mime_type=mime_type,
        duration=duration,
        project_id=projectId or None,
    )
    background.add_task(run_transcription, ctx, rec.id, language)
    log.info("upload user=%s audio=%s bytes=%d", auth.user.id, rec.id, rec.size)
    return ok({"audioFile": audio_out(rec)}, message="Upload received; transcription started")


@router.get("")
def list_audio(
    offset: int = 0,
    limit: int = 50,
    projectId: Optional[str] = None,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    recs = AudioFileRepository(db).find_by_user(
        auth.user.id, project_id=projectId, offset=offset, limit=min(limit, 200)
    )
    return ok({"audioFiles": [audio_out(r) for r in recs]})


@router.get("/{audio_id}")
def get_audio(audio_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    rec = _owned_audio(db, audio_id, auth)
    tx = rec.transcription
    return ok({
        "audioFile": audio_out(rec),
        "transcription": transcription_out(tx) if tx is not None else None,
    })


@router.get("/{audio_id}/file")
def download_audio(
    audio_id: str,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    rec = _owned_audio(db, audio_id, auth)
    data = ctx.storage.get(rec.filename)
    if data is None:
        raise NotFoundError("Audio file not found in storage")
    return Response(
        content=data,
        media_type=rec.mime_type,
        headers={"Content-Disposition": f'attachment; filename="{rec.original_name}"'},
    )


@router.post("/{audio_id}/transcribe")
def retranscribe(
    audio_id: str,
    background: BackgroundTasks,
    language: Optional[str] = None,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    audios = AudioFileRepository(db)
    rec = _owned_audio(db, audio_id, auth)
    if rec.status == AudioStatus.processing:
        raise ValidationFailure("Transcription already in progress")
    audios.set_status(rec, AudioStatus.processing)
    if rec.transcription is not None:
        TranscriptionRepository(db).set_status(rec.transcription, TranscriptionStatus.processing)
    background.add_task(run_transcription, ctx, rec.id, language)
    return ok({"audioFile": audio_out(rec)}, message="Transcription restarted")


@router.delete("/{audio_id}")
def delete_audio(
    audio_id: str,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    rec = _owned_audio(db, audio_id, auth)
    ctx.storage.delete(rec.filename)
    AudioFileRepository(db).delete(rec)
    return ok(message="Audio file deleted")
