"""Per-user pipeline notes."""
from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Response
from sqlalchemy.orm import Session

from woundcare import crud
from woundcare.auth import User
from woundcare.database import get_session
from woundcare.dependencies import get_current_user
from woundcare.schemas import PipelineNoteCreate, PipelineNoteRead, PipelineNoteReorder, PipelineNoteUpdate

router = APIRouter(prefix="/api/pipeline-notes", tags=["Pipeline Notes"])


def _own_note_or_404(db: Session, note_id: int, user: User):
    note = crud.get_pipeline_note(db, note_id)
    if note is None or note.user_id != user.id:
        raise HTTPException(status_code=404, detail="Pipeline note not found")
    return note


@router.get("", response_model=List[PipelineNoteRead])
def list_notes(db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return crud.list_pipeline_notes(db, user.id)


@router.post("", response_model=PipelineNoteRead, status_code=201)
def create_note(payload: PipelineNoteCreate, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    return crud.create_pipeline_note(db, user.id, payload)


@router.post("/reorder", response_model=List[PipelineNoteRead])
def reorder_notes(payload: PipelineNoteReorder, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    """Apply a new ordering for several notes at once; nothing changes if any id is unknown."""
    try:
        return crud.reorder_pipeline_notes(db, user.id, [(item.id, item.sort_order) for item in payload.items])
    except LookupError as exc:
        raise HTTPException(status_code=404, detail=str(exc))


@router.put("/{note_id}", response_model=PipelineNoteRead)
def update_note(
    note_id: int,
    payload: PipelineNoteUpdate,
    db: Session = Depends(get_session),
    user: User = Depends(get_current_user),
):
    note = _own_note_or_404(db, note_id, user)
    try:
        return crud.update_pipeline_note(db, note, payload)
    except ValueError as exc:
        db.rollback()
        raise HTTPException(status_code=400, detail=str(exc))


@router.delete("/{note_id}", status_code=204)
def delete_note(note_id: int, db: Session = Depends(get_session), user: User = Depends(get_current_user)):
    note = _own_note_or_404(db, note_id, user)
    crud.delete_pipeline_note(db, note)
    return Response(status_code=204)
