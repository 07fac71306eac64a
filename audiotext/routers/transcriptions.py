# audiotext/routers/transcriptions.py
from __future__ import annotations

import logging
import os
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Response
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from audiotext.asr.captions import to_srt, to_vtt
from audiotext.asr.llm import SummaryKind
from audiotext.context import AppContext
from audiotext.db.crud import ActivityLogRepository, ExportRepository, TranscriptionRepository, transcription_out
from audiotext.db.models import Role, Transcription
from audiotext.errors import AuthorizationError, NotFoundError, NotImplementedFeature
from audiotext.responses import ok
from audiotext.security import AuthContext, get_context, get_current_auth, get_db

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/transcriptions", tags=["transcriptions"])

MEDIA_TYPES = {
    "txt": "text/plain; charset=utf-8",
    "srt": "application/x-subrip; charset=utf-8",
    "vtt": "text/vtt; charset=utf-8",
}


# ---------- Schemas ----------
class EditBody(BaseModel):
    editedText: str = Field(max_length=1_000_000)


class TextSource(BaseModel):
    """Either raw ``text`` or a ``transcriptionId`` whose (edited) text is used."""

    text: Optional[str] = Field(default=None, max_length=1_000_000)
    transcriptionId: Optional[str] = None

    @model_validator(mode="after")
    def _one_source(self):
        if not (self.text and self.text.strip()) and not self.transcriptionId:
            raise ValueError("Provide either text or transcriptionId")
        return self


class EnhanceBody(TextSource):
    context: Optional[str] = Field(default=None, max_length=2000)


class SummarizeBody(TextSource):
    type: SummaryKind = "brief"


class ExportBody(BaseModel):
    transcriptionId: str
    format: Literal["txt", "srt", "vtt", "pdf", "docx"]


# ---------- Helpers ----------
def _owned(db: Session, tx_id: str, auth: AuthContext) -> Transcription:
    tx = TranscriptionRepository(db).find_by_id(tx_id)
    if tx is None:
        raise NotFoundError("Transcription not found")
    if tx.user_id != auth.user.id and auth.user.role != Role.admin.value:
        raise AuthorizationError("Forbidden")
    return tx


def _current_text(tx: Transcription) -> str:
    return tx.edited_text if tx.edited_text else tx.text


def _source_text(db: Session, body: TextSource, auth: AuthContext) -> str:
    if body.text and body.text.strip():
        return body.text
    return _current_text(_owned(db, body.transcriptionId, auth))


# ---------- LLM helpers ----------
@router.post("/enhance")
async def enhance(
    body: EnhanceBody,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    original = await run_in_threadpool(_source_text, db, body, auth)
    enhanced = await ctx.llm.enhance(original, body.context)
    return ok({"originalText": original, "enhancedText": enhanced})


@router.post("/summarize")
async def summarize(
    body: SummarizeBody,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    text = await run_in_threadpool(_source_text, db, body, auth)
    summary = await ctx.llm.summarize(text, body.type)
    return ok({"summary": summary, "type": body.type})


@router.post("/topics")
async def topics(
    body: TextSource,
    ctx: AppContext = Depends(get_context),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    text = await run_in_threadpool(_source_text, db, body, auth)
    return ok({"topics": await ctx.llm.extract_key_topics(text)})


@router.post("/export")
def export(
    body: ExportBody,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    tx = _owned(db, body.transcriptionId, auth)
    if body.format in ("pdf", "docx"):
        raise NotImplementedFeature(f"{body.format.upper()} export is not available")

    if body.format == "srt":
        content = to_srt(tx.segments or [])
    elif body.format == "vtt":
        content = to_vtt(tx.segments or [])
    else:
        content = _current_text(tx)

    ExportRepository(db).record(user_id=auth.user.id, transcription_id=tx.id, fmt=body.format)
    ActivityLogRepository(db).record(
        auth.user.id, "export", f"Exported as {body.format}", {"transcriptionId": tx.id, "format": body.format}
    )
    stem = os.path.splitext(tx.audio_file.original_name if tx.audio_file else "transcription")[0] or "transcription"
    return Response(
        content=content,
        media_type=MEDIA_TYPES[body.format],
        headers={"Content-Disposition": f'attachment; filename="{stem}.{body.format}"'},
    )


# ---------- CRUD ----------
@router.get("")
def list_transcriptions(
    offset: int = 0,
    limit: int = 50,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    recs = TranscriptionRepository(db).find_by_user(auth.user.id, offset=offset, limit=min(limit, 200))
    return ok({"transcriptions": [transcription_out(r, include_segments=False) for r in recs]})


@router.get("/{tx_id}")
def get_transcription(tx_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    return ok({"transcription": transcription_out(_owned(db, tx_id, auth))})


@router.put("/{tx_id}")
def update_transcription(
    tx_id: str,
    body: EditBody,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(get_current_auth),
):
    tx = TranscriptionRepository(db).update_edited_text(_owned(db, tx_id, auth), body.editedText)
    return ok({"transcription": transcription_out(tx)})


@router.delete("/{tx_id}")
def delete_transcription(tx_id: str, db: Session = Depends(get_db), auth: AuthContext = Depends(get_current_auth)):
    TranscriptionRepository(db).delete(_owned(db, tx_id, auth))
    return ok(message="Transcription deleted")
